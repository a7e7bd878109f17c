"""Shared library for the Advanced Ads ability hub.

Imported by the HTTP app, the CLI and the tests.

Design goals:
- Keep every ability a thin, schema-described wrapper over the content store.
- Enforce capability checks in the dispatcher, not in each ability.
- Keep storage behind a small adapter so backends can be swapped.
"""

__version__ = "1.0.0"
