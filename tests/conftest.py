from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Make the repo importable without installing it.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

# api_app loads config at import time.
os.environ.setdefault("ADVADS_STORE", "memory")

from advads_hub.abilities.registry import AbilityContext, AbilityResult, get_registry  # noqa: E402
from advads_hub.auth import ANONYMOUS, admin_caller  # noqa: E402
from advads_hub.store import InMemoryContentStore  # noqa: E402


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def ctx(store: InMemoryContentStore) -> AbilityContext:
    return AbilityContext(store=store, caller=admin_caller("tester"), platform_active=True, platform_version="2.0.3")


@pytest.fixture
def anonymous_ctx(store: InMemoryContentStore) -> AbilityContext:
    return AbilityContext(store=store, caller=ANONYMOUS)


@pytest.fixture
def run(ctx: AbilityContext):
    """Invoke an ability through the global registry and return the rendered dict."""

    def _run(name: str, payload: dict[str, Any] | None = None, context: AbilityContext | None = None) -> dict[str, Any]:
        result: AbilityResult = get_registry().execute(name, payload or {}, context or ctx)
        return result.to_dict()

    return _run
