"""Ability registry and the advads ability implementations."""

from __future__ import annotations

from .registry import (
    AbilityContext,
    AbilityRegistrationError,
    AbilityRegistry,
    AbilityResult,
    execute_ability,
    get_registry,
)

__all__ = [
    "AbilityContext",
    "AbilityRegistrationError",
    "AbilityRegistry",
    "AbilityResult",
    "execute_ability",
    "get_registry",
]
