"""FastAPI surface for the ability registry.

Routes:
- GET  /health
- GET  /v1/abilities                         list registered abilities
- GET  /v1/abilities/{domain}/{verb}         describe one ability
- POST /v1/abilities/{domain}/{verb}/run     invoke an ability

Ability-level failures are normal HTTP 200 responses with ``success: false``.
Dispatch failures (unknown ability, invalid input, forbidden, invalid output)
map to 404/422/403/500 with the same JSON body shape.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from advads_hub import __version__
from advads_hub.abilities.registry import (
    FORBIDDEN,
    INVALID_INPUT,
    INVALID_OUTPUT,
    UNKNOWN_ABILITY,
    AbilityContext,
    get_registry,
)
from advads_hub.auth import Caller, authenticate_admin_key
from advads_hub.config import load_config
from advads_hub.logging_utils import configure_logging
from advads_hub.store import ContentStore, build_store

logger = logging.getLogger(__name__)
configure_logging()

api_app = FastAPI(title="Advanced Ads Abilities API", version=__version__)

_cfg = load_config()

_STATUS_BY_CODE = {
    UNKNOWN_ABILITY: 404,
    INVALID_INPUT: 422,
    FORBIDDEN: 403,
    INVALID_OUTPUT: 500,
}

# Lazy-load the store
_store: ContentStore | None = None


def _get_store() -> ContentStore:
    global _store
    if _store is None:
        _store = build_store(_cfg)
        logger.info("Using %s content store", _cfg.store_backend)
    return _store


def get_caller(x_admin_key: Optional[str] = Header(default=None)) -> Caller:
    return authenticate_admin_key(x_admin_key, _cfg.admin_api_key)


class RunAbilityRequest(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict)


@api_app.get("/health")
def health() -> dict[str, Any]:
    return {
        "ok": True,
        "stage": _cfg.stage,
        "platform_active": _cfg.platform_active,
        "abilities": len(get_registry().list_abilities()),
    }


@api_app.get("/v1/abilities")
def list_abilities() -> dict[str, Any]:
    abilities = get_registry().describe_all()
    return {"abilities": abilities, "total": len(abilities)}


@api_app.get("/v1/abilities/{domain}/{verb}")
def describe_ability(domain: str, verb: str) -> dict[str, Any]:
    spec = get_registry().get(f"{domain}/{verb}")
    if spec is None:
        raise HTTPException(status_code=404, detail=f"Unknown ability: {domain}/{verb}")
    return spec.describe()


@api_app.post("/v1/abilities/{domain}/{verb}/run")
def run_ability(
    domain: str,
    verb: str,
    body: RunAbilityRequest,
    caller: Caller = Depends(get_caller),
) -> JSONResponse:
    ctx = AbilityContext(
        store=_get_store(),
        caller=caller,
        platform_active=_cfg.platform_active,
        platform_version=_cfg.platform_version,
    )
    result = get_registry().execute(f"{domain}/{verb}", body.input, ctx)
    status = _STATUS_BY_CODE.get(result.code or "", 200)
    return JSONResponse(status_code=status, content=result.to_dict())
