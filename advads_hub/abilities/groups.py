"""Group abilities.

Groups are terms in the ``advanced_ads_groups`` taxonomy. Per-group options
live in a side table (option ``advads-ad-groups``) keyed by term id, stored
as the id's decimal string.
"""
from __future__ import annotations

import logging
from typing import Any

from advads_hub.sanitize import sanitize_text_field, sanitize_title
from advads_hub.store import StoreError, Term

from .registry import AbilityContext, AbilityRegistry, AbilityResult, failure, requires_active_platform

logger = logging.getLogger(__name__)

GROUP_TAXONOMY = "advanced_ads_groups"
GROUP_OPTIONS_OPTION = "advads-ad-groups"

_ID = {"type": "integer", "description": "Group (term) ID."}
_RESULT = {
    "success": {"type": "boolean"},
    "message": {"type": "string"},
}


def _group_options_table(ctx: AbilityContext) -> dict[str, Any]:
    table = ctx.store.get_option(GROUP_OPTIONS_OPTION, {})
    return table if isinstance(table, dict) else {}


def _project(term: Term, table: dict[str, Any]) -> dict[str, Any]:
    options = table.get(str(term.term_id), {})
    return {
        "id": term.term_id,
        "name": term.name,
        "slug": term.slug,
        "count": term.count,
        "options": options if isinstance(options, dict) else {},
    }


def _save_group_options(ctx: AbilityContext, term_id: int, options: dict[str, Any]) -> None:
    table = _group_options_table(ctx)
    table[str(term_id)] = dict(options)
    ctx.store.update_option(GROUP_OPTIONS_OPTION, table)


@requires_active_platform
def list_groups(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    try:
        terms = ctx.store.get_terms(GROUP_TAXONOMY)
    except StoreError as e:
        logger.warning("list-groups: taxonomy query failed, reporting no groups: %s", e.message)
        return AbilityResult(success=True, data={"groups": [], "total": 0})

    table = _group_options_table(ctx)
    groups = [_project(term, table) for term in terms]
    return AbilityResult(success=True, data={"groups": groups, "total": len(groups)})


@requires_active_platform
def get_group(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    group_id = payload["id"]
    if group_id <= 0:
        return failure("Invalid group ID.")

    term = ctx.store.get_term(group_id, GROUP_TAXONOMY)
    if term is None:
        return failure("Group not found.")
    return AbilityResult(success=True, data={"group": _project(term, _group_options_table(ctx))})


@requires_active_platform
def create_group(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    name = sanitize_text_field(payload.get("name"))
    if not name:
        return failure("Group name is required.")

    slug = sanitize_title(payload["slug"]) if payload.get("slug") else None
    try:
        term = ctx.store.insert_term(GROUP_TAXONOMY, name, slug=slug)
    except StoreError as e:
        logger.warning("create-group %r failed: %s", name, e.message)
        return failure(e.message or "Failed to create group.")

    if "options" in payload:
        _save_group_options(ctx, term.term_id, payload["options"])

    return AbilityResult(success=True, data={"id": term.term_id, "slug": term.slug}, message="Group created.")


@requires_active_platform
def update_group(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    group_id = payload["id"]
    if group_id <= 0:
        return failure("Invalid group ID.")

    if ctx.store.get_term(group_id, GROUP_TAXONOMY) is None:
        return failure("Group not found.")

    fields: dict[str, Any] = {}
    if "name" in payload:
        fields["name"] = sanitize_text_field(payload["name"])
    if "slug" in payload:
        fields["slug"] = sanitize_title(payload["slug"])

    if fields:
        try:
            ctx.store.update_term(group_id, GROUP_TAXONOMY, **fields)
        except StoreError as e:
            logger.warning("update-group %s failed: %s", group_id, e.message)
            return failure(e.message or "Failed to update group.")

    if "options" in payload:
        _save_group_options(ctx, group_id, payload["options"])

    return AbilityResult(success=True, data={"id": group_id}, message="Group updated.")


@requires_active_platform
def delete_group(payload: dict[str, Any], ctx: AbilityContext) -> AbilityResult:
    group_id = payload["id"]
    if group_id <= 0:
        return failure("Invalid group ID.")

    if not ctx.store.delete_term(group_id, GROUP_TAXONOMY):
        return failure("Failed to delete group.")

    table = _group_options_table(ctx)
    if str(group_id) in table:
        del table[str(group_id)]
        ctx.store.update_option(GROUP_OPTIONS_OPTION, table)

    return AbilityResult(success=True, data={"id": group_id}, message="Group deleted.")


def register(registry: AbilityRegistry) -> None:
    """Register the group abilities with the registry."""
    registry.register(
        "advads/list-groups",
        label="List Ad Groups",
        description="List all ad groups, including empty ones.",
        input_schema={"type": "object", "properties": {}, "additionalProperties": False},
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "groups": {"type": "array"}, "total": {"type": "integer"}},
        },
        handler=list_groups,
    )
    registry.register(
        "advads/get-group",
        label="Get Ad Group",
        description="Get a single ad group with its options.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {"id": _ID},
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "group": {"type": "object"}},
        },
        handler=get_group,
    )
    registry.register(
        "advads/create-group",
        label="Create Ad Group",
        description="Create a new ad group.",
        input_schema={
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "description": "Group name."},
                "slug": {"type": "string", "description": "Group slug. Derived from the name when omitted."},
                "options": {"type": "object", "description": "Group options."},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}, "slug": {"type": "string"}},
        },
        handler=create_group,
    )
    registry.register(
        "advads/update-group",
        label="Update Ad Group",
        description="Update an ad group. Options, when given, replace the existing options.",
        input_schema={
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": _ID,
                "name": {"type": "string"},
                "slug": {"type": "string"},
                "options": {"type": "object"},
            },
            "additionalProperties": False,
        },
        output_schema={
            "type": "object",
            "required": ["success"],
            "properties": {**_RESULT, "id": {"type": "integer"}},
        },
        handler=update_group,
    )
    registry.register(
        "advads/delete-group",
        label="Delete Ad Group",
        description="Delete an ad group and its options.",
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
        handler=delete_group,
    )
