# start_app.py
"""Create the database schema if needed and launch the API server."""

from __future__ import annotations

import argparse

import uvicorn

from tableside.app.config import get_settings


def main(argv: list[str] | None = None) -> None:
    """Parse server options, then start uvicorn on the application."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args(argv)

    settings = get_settings()
    uvicorn.run(
        "tableside.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
