"""Placement abilities.

A placement binds an ad or group (``item``: ``ad_123`` / ``group_123``) to a
location such as the header, footer or post content. Placements are posts of
type ``advanced_ads_plcmnt``; the slug is the post name and type, item and
options are separate meta entries.
"""
from __future__ import annotations

import logging
from typing import Any

from advads_hub.sanitize import sanitize_key, sanitize_text_field
from advads_hub.store import Post, StoreError

from .registry import AbilityContext, AbilityRegistry, AbilityResult, failure, requires_active_platform

logger = logging.getLogger(__name__)

PLACEMENT_POST_TYPE = "advanced_ads_plcmnt"
META_TYPE = "type"
META_ITEM = "item"
META_OPTIONS = "options"

LIST_LIMIT = 100
SLUG_EXISTS_MESSAGE = "Placement slug already exists."

_ID = {"type": "integer", "description": "Placement ID."}
_RESULT = {
    "success": {"type": "boolean"},
    "message": {"type": "string"},
}


def _load_placement(ctx: AbilityContext, placement_id: int) -> Post | None:
    post = ctx.store.get_post(placement_id)
    if post is None or post.post_type != PLACEMENT_POST_TYPE:
        return None
    return post


def _project(ctx: AbilityContext, post: Post) -> dict[str, Any]:
    options = ctx.store.get_post_meta(post.id, META_OPTIONS, {})
    return {
        "id": post.id,
        "slug": post.slug,
        "name": post.title,
        "status": post.status,
        "type": ctx.store.get_post_meta(post.id, META_TYPE) or "default",
        "item": ctx.store.get_post_meta(post.id, META_ITEM) or "",
        "options": options if isinstance(options, dict) else {},
    }


def _store_failure(e: StoreError, fallback: str) -> AbilityResult:
    if e.code == "duplicate_slug":
        return failure(SLUG_EXISTS_MESSAGE)
    return failure(e.message or fallback)


@requires_active_platform
def list_placements(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    posts = ctx.store.get_posts(post_type=PLACEMENT_POST_TYPE, status="any", limit=LIST_LIMIT)
    placements = [_project(ctx, post) for post in posts]
    return AbilityResult(success=True, data={"placements": placements, "total": len(placements)})


@requires_active_platform
def get_placement(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_placement(ctx, payload["id"])
    if post is None:
        return failure("Placement not found.")
    return AbilityResult(success=True, data={"placement": _project(ctx, post)})


@requires_active_platform
def create_placement(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    slug = sanitize_key(payload["slug"])
    if not slug:
        return failure("Placement slug is required.")

    if ctx.store.get_post_by_slug(slug, post_type=PLACEMENT_POST_TYPE) is not None:
        return failure(SLUG_EXISTS_MESSAGE)

    try:
        placement_id = ctx.store.insert_post(
            post_type=PLACEMENT_POST_TYPE,
            title=sanitize_text_field(payload["name"]),
            status="publish",
            slug=slug,
            meta={
                META_TYPE: sanitize_text_field(payload["type"]),
                META_ITEM: sanitize_text_field(payload["item"]),
                META_OPTIONS: dict(payload.get("options") or {}),
            },
        )
    except StoreError as e:
        # The store's slug constraint catches a concurrent create that passed the check above.
        logger.warning("create-placement %s failed: %s", slug, e.message)
        return _store_failure(e, "Failed to create placement.")

    return AbilityResult(success=True, data={"id": placement_id, "slug": slug}, message="Placement created.")


@requires_active_platform
def update_placement(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_placement(ctx, payload["id"])
    if post is None:
        return failure("Placement not found.")

    fields: dict[str, Any] = {}
    if "slug" in payload:
        slug = sanitize_key(payload["slug"])
        if not slug:
            return failure("Placement slug is required.")
        fields["slug"] = slug
    if "name" in payload:
        fields["title"] = sanitize_text_field(payload["name"])
    if "status" in payload:
        fields["status"] = payload["status"]

    if fields:
        try:
            ctx.store.update_post(post.id, **fields)
        except StoreError as e:
            logger.warning("update-placement %s failed: %s", post.id, e.message)
            return _store_failure(e, "Failed to update placement.")

    if "type" in payload:
        ctx.store.update_post_meta(post.id, META_TYPE, sanitize_text_field(payload["type"]))
    if "item" in payload:
        ctx.store.update_post_meta(post.id, META_ITEM, sanitize_text_field(payload["item"]))
    if "options" in payload:
        ctx.store.update_post_meta(post.id, META_OPTIONS, dict(payload["options"]))

    return AbilityResult(success=True, data={"id": post.id}, message="Placement updated.")


@requires_active_platform
def delete_placement(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    post = _load_placement(ctx, payload["id"])
    if post is None:
        return failure("Placement not found.")

    if not ctx.store.delete_post(post.id, force=True):
        return failure("Failed to delete placement.")
    return AbilityResult(success=True, data={"id": post.id}, message="Placement deleted.")


def register(registry: AbilityRegistry) -> None:
    """Register the placement abilities with the registry."""
    registry.register(
        "advads/list-placements",
        label="List Placements",
        description="List ad placements (up to 100).",
        input_schema={"type": "object", "properties": {}, "additionalProperties": False},
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "placements": {"type": "array"}, "total": {"type": "integer"}},
        },
        handler=list_placements,
    )
    registry.register(
        "advads/get-placement",
        label="Get Placement",
        description="Get details of a specific placement.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {"id": _ID},
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "placement": {"type": "object"}},
        },
        handler=get_placement,
    )
    registry.register(
        "advads/create-placement",
        label="Create Placement",
        description="Create a new ad placement.",
        input_schema={
            "type": "object",
            "required": ["slug", "name", "type", "item"],
            "properties": {
                "slug": {"type": "string", "description": "Unique placement slug."},
                "name": {"type": "string", "description": "Display name."},
                "type": {"type": "string", "description": "Placement type (post_content, header, footer, etc.)."},
                "item": {"type": "string", "description": "Ad or group (ad_123 or group_123)."},
                "options": {"type": "object", "description": "Additional options."},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}, "slug": {"type": "string"}},
        },
        handler=create_placement,
    )
    registry.register(
        "advads/update-placement",
        label="Update Placement",
        description="Update a placement. Options, when given, replace the existing options.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": _ID,
                "slug": {"type": "string"},
                "name": {"type": "string"},
                "status": {"type": "string", "enum": ["publish", "draft", "pending", "private"]},
                "type": {"type": "string"},
                "item": {"type": "string"},
                "options": {"type": "object"},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}},
        },
        handler=update_placement,
    )
    registry.register(
        "advads/delete-placement",
        label="Delete Placement",
        description="Permanently delete an ad placement.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {"id": _ID},
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}},
        },
        handler=delete_placement,
    )
