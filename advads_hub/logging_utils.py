from __future__ import annotations

import logging
import os


def configure_logging(verbose_int: int = 0) -> None:
    """Configure root logging. Safe to call more than once."""
    level = logging.DEBUG if (verbose_int or 0) >= 1 else logging.INFO

    # LOG_LEVEL from the environment wins.
    env_level = os.environ.get("LOG_LEVEL")
    if env_level:
        level = getattr(logging, env_level.upper(), level)

    root = logging.getLogger()
    if root.handlers:
        # Host (uvicorn, pytest) already configured handlers; just adjust level.
        root.setLevel(level)
        for h in root.handlers:
            h.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
