"""diagnose ability - read-only health report across settings, ads and placements."""
from __future__ import annotations

from typing import Any

from .ads import AD_POST_TYPE
from .placements import PLACEMENT_POST_TYPE
from .registry import AbilityContext, AbilityRegistry, AbilityResult, requires_active_platform
from .settings import read_document

ISSUE_NO_PUBLISHER_ID = "AdSense Publisher ID not configured"
ISSUE_NO_PUBLISHED_ADS = "No published ads found"


@requires_active_platform
def diagnose(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    adsense = read_document(ctx, "adsense")
    published_ads = ctx.store.count_posts(post_type=AD_POST_TYPE, status="publish")
    placement_count = ctx.store.count_posts(post_type=PLACEMENT_POST_TYPE, status="publish")

    issues: list[str] = []
    if not adsense.get("adsense-id"):
        issues.append(ISSUE_NO_PUBLISHER_ID)
    if published_ads == 0:
        issues.append(ISSUE_NO_PUBLISHED_ADS)

    info = {
        "adsense_id": str(adsense.get("adsense-id") or "Not set"),
        "auto_ads": "Enabled" if adsense.get("page-level-enabled") else "Disabled",
        "placement_count": placement_count,
        "published_ads": published_ads,
        "version": ctx.platform_version or "unknown",
    }
    return AbilityResult(success=True, data={"healthy": not issues, "issues": issues, "info": info})


def register(registry: AbilityRegistry) -> None:
    """Register the diagnose ability with the registry."""
    registry.register(
        "advads/diagnose",
        label="Diagnose Issues",
        description="Check for common Advanced Ads configuration issues.",
        input_schema={"type": "object", "properties": {}, "additionalProperties": False},
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {
                "success": {"type": "boolean"},
                "message": {"type": "string"},
                "healthy": {"type": "boolean"},
                "issues": {"type": "array", "items": {"type": "string"}},
                "info": {
                    "type": "object",
                    "properties": {
                        "adsense_id": {"type": "string"},
                        "auto_ads": {"type": "string", "enum": ["Enabled", "Disabled"]},
                        "placement_count": {"type": "integer"},
                        "published_ads": {"type": "integer"},
                        "version": {"type": "string"},
                    },
                },
            },
        },
        handler=diagnose,
    )
