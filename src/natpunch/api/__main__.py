# src/natpunch/api/__main__.py
from __future__ import annotations

import argparse
from typing import Optional

import uvicorn

from natpunch.env import load_dotenv_if_present


def main(argv: Optional[list[str]] = None) -> None:
    # Load .env early so NATPUNCH_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from natpunch.api.app import create_app
    from natpunch.api.config import load_api_config
    from natpunch.api.structured_logging import configure_structured_logging

    cfg = load_api_config()

    p = argparse.ArgumentParser(description="natpunch rendezvous registry (register / get / all)")
    p.add_argument("-p", "--port", type=int, default=cfg.port, help=f"listen port (default {cfg.port})")
    p.add_argument("--host", default=cfg.host, help=f"listen host (default {cfg.host})")
    args = p.parse_args(argv)

    configure_structured_logging()
    uvicorn.run(create_app(), host=str(args.host), port=int(args.port), log_level="info")


if __name__ == "__main__":
    main()
