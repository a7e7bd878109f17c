"""Settings abilities - read and shallow-merge the three plugin settings documents."""
from __future__ import annotations

from typing import Any

from .registry import AbilityContext, AbilityRegistry, AbilityResult, requires_active_platform

# document name -> option name
SETTINGS_OPTIONS = {
    "general": "advanced-ads",
    "adsense": "advanced-ads-adsense",
    "privacy": "advanced-ads-privacy",
}


def read_document(ctx: AbilityContext, key: str) -> dict[str, Any]:
    value = ctx.store.get_option(SETTINGS_OPTIONS[key], {})
    return value if isinstance(value, dict) else {}


@requires_active_platform
def get_settings(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    settings = {key: read_document(ctx, key) for key in SETTINGS_OPTIONS}
    return AbilityResult(success=True, data={"settings": settings})


@requires_active_platform
def update_settings(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    updated: list[str] = []
    for key, option_name in SETTINGS_OPTIONS.items():
        incoming = payload.get(key)
        if not isinstance(incoming, dict):
            continue
        # One level deep: nested maps are overwritten, not merged.
        ctx.store.update_option(option_name, {**read_document(ctx, key), **incoming})
        updated.append(key)
    return AbilityResult(success=True, data={"updated": updated}, message="Settings updated.")


def register(registry: AbilityRegistry) -> None:
    """Register the settings abilities with the registry."""
    registry.register(
        "advads/get-settings",
        label="Get Settings",
        description="Get Advanced Ads settings (general, adsense, privacy).",
        input_schema={"type": "object", "properties": {}, "additionalProperties": False},
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {
                "success": {"type": "boolean"},
                "message": {"type": "string"},
                "settings": {
                    "type": "object",
                    "properties": {key: {"type": "object"} for key in SETTINGS_OPTIONS},
                },
            },
        },
        handler=get_settings,
    )
    registry.register(
        "advads/update-settings",
        label="Update Settings",
        description="Shallow-merge the given fields into Advanced Ads settings.",
        input_schema={
            "type": "object",
            "properties": {
                "general": {"type": "object", "description": "General settings to merge."},
                "adsense": {"type": "object", "description": "AdSense settings to merge."},
                "privacy": {"type": "object", "description": "Privacy settings to merge."},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {
                "success": {"type": "boolean"},
                "message": {"type": "string"},
                "updated": {"type": "array", "items": {"type": "string", "enum": list(SETTINGS_OPTIONS)}},
            },
        },
        handler=update_settings,
    )
