"""Ability registry for the advads hub.

Abilities are named operations an agent can invoke. Each ability:
1. Declares an input schema and an output schema (JSON Schema)
2. Declares a permission predicate, evaluated on every invocation
3. Executes against the content store
4. Returns a structured result, success or failure

The registry is the dispatcher: it resolves the name, applies input defaults,
validates input, checks permission, runs the handler and validates the output.
Nothing reaches the store unless input validation and permission pass.
"""
from __future__ import annotations

import copy
import functools
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

import jsonschema
from jsonschema.exceptions import best_match

from advads_hub.auth import Caller, can_manage_options

if TYPE_CHECKING:
    from advads_hub.store import ContentStore

logger = logging.getLogger(__name__)

PLATFORM_INACTIVE_MESSAGE = "Advanced Ads not active."

# Dispatch-level error codes; ability handlers never set these.
UNKNOWN_ABILITY = "unknown_ability"
INVALID_INPUT = "invalid_input"
FORBIDDEN = "forbidden"
INVALID_OUTPUT = "invalid_output"

_NAME_RE = re.compile(r"^[a-z0-9-]+/[a-z0-9-]+$")


class AbilityRegistrationError(RuntimeError):
    pass


@dataclass
class AbilityResult:
    """Result from ability execution."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        result.update(self.data)
        if self.message is not None:
            result["message"] = self.message
        elif not self.success:
            result["message"] = "Unknown error."
        if self.code:
            result["code"] = self.code
        return result


def failure(message: str, *, code: str | None = None) -> AbilityResult:
    return AbilityResult(success=False, message=message, code=code)


@dataclass
class AbilityContext:
    """Context passed to ability handlers during execution."""

    store: "ContentStore"
    caller: Caller
    # Whether the Advanced Ads platform is loaded.
    platform_active: bool = True
    platform_version: str | None = None


Handler = Callable[[dict[str, Any], AbilityContext], AbilityResult]
Permission = Callable[[AbilityContext], bool]


@dataclass(frozen=True)
class AbilitySpec:
    """Specification for a registered ability."""

    name: str
    label: str
    description: str
    input_schema: dict[str, Any]
    output_schema: dict[str, Any]
    handler: Handler
    permission: Permission
    category: str = "site"

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "category": self.category,
            "input_schema": self.input_schema,
            "output_schema": self.output_schema,
        }


def requires_active_platform(handler: Handler) -> Handler:
    """Short-circuit a handler when the ad platform is not loaded."""

    @functools.wraps(handler)
    def wrapper(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
        if not ctx.platform_active:
            return failure(PLATFORM_INACTIVE_MESSAGE)
        return handler(payload, ctx)

    return wrapper


def _apply_defaults(schema: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(payload)
    for key, prop in (schema.get("properties") or {}).items():
        if key not in out and isinstance(prop, dict) and "default" in prop:
            out[key] = copy.deepcopy(prop["default"])
    return out


def _validation_message(validator: jsonschema.protocols.Validator, instance: Any) -> str | None:
    error = best_match(validator.iter_errors(instance))
    if error is None:
        return None
    return f"{error.message} at path {list(error.absolute_path)}"


class AbilityRegistry:
    """Registry of available abilities."""

    def __init__(self) -> None:
        self._abilities: dict[str, AbilitySpec] = {}
        self._validators: dict[str, tuple[jsonschema.protocols.Validator, jsonschema.protocols.Validator]] = {}

    def register(
        self,
        name: str,
        *,
        label: str,
        description: str,
        input_schema: dict[str, Any],
        output_schema: dict[str, Any],
        handler: Handler,
        permission: Permission = can_manage_options,
        category: str = "site",
    ) -> None:
        """Register an ability. Registering a name twice is a configuration error."""
        if not _NAME_RE.match(name):
            raise AbilityRegistrationError(f"Invalid ability name: {name!r} (expected '<domain>/<verb>')")
        if name in self._abilities:
            raise AbilityRegistrationError(f"Ability already registered: {name}")
        try:
            jsonschema.Draft202012Validator.check_schema(input_schema)
            jsonschema.Draft202012Validator.check_schema(output_schema)
        except jsonschema.SchemaError as e:
            raise AbilityRegistrationError(f"Invalid schema for {name}: {e.message}") from e

        self._abilities[name] = AbilitySpec(
            name=name,
            label=label,
            description=description,
            input_schema=input_schema,
            output_schema=output_schema,
            handler=handler,
            permission=permission,
            category=category,
        )
        self._validators[name] = (
            jsonschema.Draft202012Validator(input_schema),
            jsonschema.Draft202012Validator(output_schema),
        )
        logger.debug("Registered ability: %s", name)

    def get(self, name: str) -> AbilitySpec | None:
        """Get an ability by name."""
        return self._abilities.get(name)

    def list_abilities(self) -> list[str]:
        """List all registered ability names."""
        return list(self._abilities.keys())

    def describe_all(self) -> list[dict[str, Any]]:
        return [spec.describe() for spec in self._abilities.values()]

    def validate_input(self, name: str, payload: Any) -> tuple[dict[str, Any] | None, str | None]:
        """Apply declared defaults and validate.

        Returns (validated_payload, None) or (None, error_message).
        """
        spec = self._abilities[name]
        input_validator, _ = self._validators[name]
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            return None, f"Input must be an object, got {type(payload).__name__}"
        prepared = _apply_defaults(spec.input_schema, payload)
        error = _validation_message(input_validator, prepared)
        if error:
            return None, error
        return prepared, None

    def execute(self, name: str, payload: Any, ctx: AbilityContext) -> AbilityResult:
        """Dispatch an ability by name with payload and context."""
        spec = self._abilities.get(name)
        if not spec:
            return failure(f"Unknown ability: {name}", code=UNKNOWN_ABILITY)

        validated, error = self.validate_input(name, payload)
        if validated is None:
            logger.info("Rejected %s input: %s", name, error)
            return failure(f"Invalid input: {error}", code=INVALID_INPUT)

        if not spec.permission(ctx):
            logger.info("Denied %s for caller %s", name, ctx.caller.user_id)
            return failure("Sorry, you are not allowed to do that.", code=FORBIDDEN)

        result = spec.handler(validated, ctx)

        _, output_validator = self._validators[name]
        error = _validation_message(output_validator, result.to_dict())
        if error:
            logger.error("Ability %s returned output violating its schema: %s", name, error)
            return failure(f"Invalid output: {error}", code=INVALID_OUTPUT)
        return result


# Global registry instance
_registry: AbilityRegistry | None = None


def get_registry() -> AbilityRegistry:
    """Get the global ability registry, initializing if needed."""
    global _registry
    if _registry is None:
        registry = AbilityRegistry()
        _register_default_abilities(registry)
        _registry = registry
    return _registry


def _register_default_abilities(registry: AbilityRegistry) -> None:
    """Register the advads abilities."""
    from . import ads, diagnostics, groups, placements, settings

    ads.register(registry)
    placements.register(registry)
    groups.register(registry)
    settings.register(registry)
    diagnostics.register(registry)


def execute_ability(name: str, payload: Any, ctx: AbilityContext) -> AbilityResult:
    """Execute an ability by name using the global registry."""
    return get_registry().execute(name, payload, ctx)
