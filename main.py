#!/usr/bin/env python3
"""
Todolist API -- server launcher.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 127.0.0.1 --reload
  python main.py --check-config

Environment variables (see core/config.py for the full list):
  SECRET_KEY            JWT signing secret, at least 32 chars (required unless DEBUG=true)
  TOKEN_EXPIRE_SECONDS  Token lifetime in seconds (required)
  DATABASE_URL          SQLAlchemy URL of the resource store
  REDIS_URL             Redis URL of the cache (optional; the service runs without it)
"""

import argparse
import sys

import uvicorn
from pydantic import ValidationError
from sqlalchemy.engine import make_url

from core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="todolist",
        description="Serve the todolist REST API.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Bind port (default: 3000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="uvicorn log level (default: info)",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration and exit without serving",
    )
    args = parser.parse_args()

    # Fail fast on bad configuration, before uvicorn imports the app.
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"  [!] Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(2)

    if args.check_config:
        cache = settings.redis_url if settings.cache_enabled else "disabled"
        database = make_url(settings.database_url).render_as_string(hide_password=True)
        print(f"  Configuration OK (database={database}, cache={cache})")
        return

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload, log_level=args.log_level)


if __name__ == "__main__":
    main()
