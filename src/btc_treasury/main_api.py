"""CLI: Serve the treasury API with uvicorn.

Equivalent to ``uvicorn btc_treasury.app:app``.
"""
from __future__ import annotations

import argparse
from typing import Optional, Sequence

import uvicorn

from btc_treasury.config import get_env, load_env_file


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the treasury API server")
    p.add_argument("--host", default=get_env("API_HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(get_env("API_PORT", "8000") or 8000))
    p.add_argument("--reload", action="store_true", help="Reload on code changes (dev only)")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env_file()
    args = parse_args(argv)
    uvicorn.run("btc_treasury.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
