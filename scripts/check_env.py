"""CLI helper to validate required environment variables.

Usage::

    python -m scripts.check_env

It imports :mod:`studydeck.core.config` and reports any validation errors in
a readable format, exiting with status code 1 when something is missing.
"""

from __future__ import annotations

import sys

from pydantic import ValidationError

_HIDDEN_MARKERS = ("key", "password", "database_url")


def main() -> int:
    try:
        from studydeck.core.config import settings
    except ValidationError:
        # ``studydeck.core.config`` already printed the per-field summary.
        print("Environment validation failed, see details above.", file=sys.stderr)
        return 1

    print("Environment variables OK.")
    for name, value in settings.model_dump().items():
        if any(marker in name.lower() for marker in _HIDDEN_MARKERS):
            print(f"- {name}: <hidden>")
        else:
            print(f"- {name}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
