from __future__ import annotations

import os
from dataclasses import dataclass

STORE_BACKENDS = ("memory", "file", "rds")


class ConfigError(RuntimeError):
    pass


def _req(name: str) -> str:
    v = os.getenv(name)
    if not v:
        raise ConfigError(f"Missing required env var: {name}")
    return v


def _flag(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AbilitiesConfig:
    stage: str
    # Whether the Advanced Ads platform is loaded; abilities refuse to run otherwise.
    platform_active: bool
    platform_version: str | None
    store_backend: str
    store_path: str | None
    # RDS Data API settings (store_backend == "rds")
    db_resource_arn: str | None
    db_secret_arn: str | None
    db_name: str | None
    admin_api_key: str | None


def load_config() -> AbilitiesConfig:
    backend = os.getenv("ADVADS_STORE", "memory").strip().lower() or "memory"
    if backend not in STORE_BACKENDS:
        raise ConfigError(f"Unsupported ADVADS_STORE: {backend} (expected one of {', '.join(STORE_BACKENDS)})")

    store_path = os.getenv("ADVADS_STORE_PATH")
    db_resource_arn = os.getenv("DB_RESOURCE_ARN")
    db_secret_arn = os.getenv("DB_SECRET_ARN")
    db_name = os.getenv("DB_NAME")
    if backend == "file":
        store_path = _req("ADVADS_STORE_PATH")
    elif backend == "rds":
        db_resource_arn = _req("DB_RESOURCE_ARN")
        db_secret_arn = _req("DB_SECRET_ARN")
        db_name = _req("DB_NAME")

    return AbilitiesConfig(
        stage=os.getenv("STAGE", "dev"),
        platform_active=_flag("ADVADS_ACTIVE", True),
        platform_version=os.getenv("ADVADS_VERSION") or None,
        store_backend=backend,
        store_path=store_path,
        db_resource_arn=db_resource_arn,
        db_secret_arn=db_secret_arn,
        db_name=db_name,
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
    )
