"""Ad abilities - list, read, create, update and delete advertisements.

Ads are posts of type ``advanced_ads``. The ad type and every other ad setting
live in one options map stored as post meta; an explicit ``type`` always
overwrites ``options["type"]``.
"""
from __future__ import annotations

import logging
from typing import Any

from advads_hub.sanitize import kses_post, sanitize_text_field
from advads_hub.store import StoreError

from .registry import AbilityContext, AbilityRegistry, AbilityResult, failure, requires_active_platform

logger = logging.getLogger(__name__)

AD_POST_TYPE = "advanced_ads"
AD_OPTIONS_META_KEY = "advanced_ads_ad_options"
GROUP_TAXONOMY = "advanced_ads_groups"

AD_STATUSES = ["publish", "draft", "pending", "private", "future"]
LIST_LIMIT = 100

_ID = {"type": "integer", "description": "Ad ID."}
_STATUS = {"type": "string", "enum": AD_STATUSES, "description": "Post status."}
_RESULT = {
    "success": {"type": "boolean"},
    "message": {"type": "string"},
}


def _ad_type(options: Any) -> str:
    if isinstance(options, dict) and options.get("type"):
        return str(options["type"])
    return "unknown"


def _load_ad(ctx: AbilityContext, ad_id: int):
    post = ctx.store.get_post(ad_id)
    if post is None or post.post_type != AD_POST_TYPE:
        return None
    return post


def _options_of(ctx: AbilityContext, ad_id: int) -> dict[str, Any]:
    options = ctx.store.get_post_meta(ad_id, AD_OPTIONS_META_KEY, {})
    return options if isinstance(options, dict) else {}


@requires_active_platform
def list_ads(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    status = str(payload.get("status") or "any").strip().lower()
    if status not in AD_STATUSES:
        status = "any"

    ads = []
    for post in ctx.store.get_posts(post_type=AD_POST_TYPE, status=status, limit=LIST_LIMIT):
        ads.append(
            {
                "id": post.id,
                "title": post.title,
                "status": post.status,
                "type": _ad_type(_options_of(ctx, post.id)),
            }
        )
    return AbilityResult(success=True, data={"ads": ads, "total": len(ads)})


@requires_active_platform
def get_ad(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_ad(ctx, payload["id"])
    if post is None:
        return failure("Ad not found.")

    options = _options_of(ctx, post.id)
    return AbilityResult(
        success=True,
        data={
            "ad": {
                "id": post.id,
                "title": post.title,
                "status": post.status,
                "content": post.content,
                "type": _ad_type(options),
                "options": options,
            }
        },
    )


@requires_active_platform
def create_ad(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    title = sanitize_text_field(payload.get("title"))
    content = kses_post(payload.get("content"))
    if not title or not content:
        return failure("Title and content are required.")

    try:
        ad_id = ctx.store.insert_post(
            post_type=AD_POST_TYPE,
            title=title,
            content=content,
            status=payload.get("status", "publish"),
        )
    except StoreError as e:
        logger.warning("create-ad insert failed: %s", e.message)
        return failure(e.message or "Failed to create ad.")

    if "type" in payload or "options" in payload:
        options = dict(payload.get("options") or {})
        if "type" in payload:
            options["type"] = sanitize_text_field(payload["type"])
        ctx.store.update_post_meta(ad_id, AD_OPTIONS_META_KEY, options)

    return AbilityResult(success=True, data={"id": ad_id}, message="Ad created.")


@requires_active_platform
def update_ad(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_ad(ctx, payload["id"])
    if post is None:
        return failure("Ad not found.")

    fields: dict[str, Any] = {}
    if "title" in payload:
        fields["title"] = sanitize_text_field(payload["title"])
    if "content" in payload:
        fields["content"] = kses_post(payload["content"])
    if "status" in payload:
        fields["status"] = payload["status"]

    if fields:
        try:
            ctx.store.update_post(post.id, **fields)
        except StoreError as e:
            logger.warning("update-ad %s failed: %s", post.id, e.message)
            return failure(e.message or "Failed to update ad.")

    if "options" in payload or "type" in payload:
        existing = _options_of(ctx, post.id)
        if "options" in payload:
            incoming = dict(payload["options"])
            if "type" in payload:
                incoming["type"] = sanitize_text_field(payload["type"])
            options = incoming if payload.get("replace_options") else {**existing, **incoming}
        else:
            options = {**existing, "type": sanitize_text_field(payload["type"])}
        ctx.store.update_post_meta(post.id, AD_OPTIONS_META_KEY, options)

    return AbilityResult(success=True, data={"id": post.id}, message="Ad updated.")


@requires_active_platform
def delete_ad(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_ad(ctx, payload["id"])
    if post is None:
        return failure("Ad not found.")

    force = bool(payload.get("force", True))
    if not ctx.store.delete_post(post.id, force=force):
        return failure("Failed to delete ad.")

    return AbilityResult(
        success=True,
        data={"id": post.id, "permanent": force},
        message="Ad deleted." if force else "Ad moved to trash.",
    )


@requires_active_platform
def set_ad_groups(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_ad(ctx, payload["id"])
    if post is None:
        return failure("Ad not found.")

    group_ids = sorted(set(payload["groups"]))
    for group_id in group_ids:
        if ctx.store.get_term(group_id, GROUP_TAXONOMY) is None:
            return failure("Group not found.")

    try:
        ctx.store.set_object_terms(post.id, group_ids, GROUP_TAXONOMY)
    except StoreError as e:
        return failure(e.message or "Failed to assign groups.")

    return AbilityResult(success=True, data={"id": post.id, "groups": group_ids}, message="Ad groups updated.")


def register(registry: AbilityRegistry) -> None:
    """Register the ad abilities with the registry."""
    registry.register(
        "advads/list-ads",
        label="List Ads",
        description="List Advanced Ads advertisements (up to 100).",
        input_schema={
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "default": "any",
                    "description": "Filter by status (publish, draft, pending, private, future, any).",
                },
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "ads": {"type": "array"}, "total": {"type": "integer"}},
        },
        handler=list_ads,
    )
    registry.register(
        "advads/get-ad",
        label="Get Ad",
        description="Get details of a specific ad.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {"id": _ID},
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "ad": {"type": "object"}},
        },
        handler=get_ad,
    )
    registry.register(
        "advads/create-ad",
        label="Create Ad",
        description="Create a new ad.",
        input_schema={
            "type": "object",
            "required": ["title", "content"],
            "properties": {
                "title": {"type": "string", "description": "Ad title."},
                "content": {"type": "string", "description": "Ad content (HTML)."},
                "status": {**_STATUS, "default": "publish"},
                "type": {"type": "string", "description": "Ad type (plain, image, adsense, ...)."},
                "options": {"type": "object", "description": "Ad options."},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}},
        },
        handler=create_ad,
    )
    registry.register(
        "advads/update-ad",
        label="Update Ad",
        description="Update an existing ad. Options are merged unless replace_options is true.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": _ID,
                "title": {"type": "string"},
                "content": {"type": "string"},
                "status": _STATUS,
                "type": {"type": "string"},
                "options": {"type": "object"},
                "replace_options": {
                    "type": "boolean",
                    "default": False,
                    "description": "Replace options instead of merging.",
                },
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}},
        },
        handler=update_ad,
    )
    registry.register(
        "advads/delete-ad",
        label="Delete Ad",
        description="Delete an ad. force=false moves it to the trash instead.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": _ID,
                "force": {"type": "boolean", "default": True, "description": "Delete permanently."},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}, "permanent": {"type": "boolean"}},
        },
        handler=delete_ad,
    )
    registry.register(
        "advads/set-ad-groups",
        label="Set Ad Groups",
        description="Replace the groups an ad belongs to.",
        input_schema={
            "type": "object",
            "required": ["id", "groups"],
            "properties": {
                "id": _ID,
                "groups": {"type": "array", "items": {"type": "integer"}, "description": "Group IDs."},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}, "groups": {"type": "array"}},
        },
        handler=set_ad_groups,
    )
