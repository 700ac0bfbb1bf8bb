"""Storefront API entrypoint.

Run with:
  python -m storefront
"""

import sys

import uvicorn

from storefront.config import ConfigError, load_settings


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        print("Invalid environment configuration:", file=sys.stderr)
        for problem in e.problems:
            print(f"  - {problem}", file=sys.stderr)
        raise SystemExit(1)
    uvicorn.run("storefront.app:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
