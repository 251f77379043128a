# src/natpunch/client/__main__.py
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from natpunch.env import load_dotenv_if_present

log = logging.getLogger("natpunch.agent")


def main(argv: Optional[list[str]] = None) -> int:
    # Load .env early so NATPUNCH_* vars exist before anything reads them.
    load_dotenv_if_present()

    from natpunch.client.agent import PunchAgent
    from natpunch.client.config import DEFAULT_CONFIG_PATH, load_client_config
    from natpunch.client.driver import run_driver
    from natpunch.errors import PunchError
    from natpunch.net.net_logging import configure_structured_logging, log_event

    p = argparse.ArgumentParser(description="natpunch agent (register, look up a peer, punch a UDP path)")
    p.add_argument(
        "--config",
        default=os.environ.get("NATPUNCH_CONFIG", DEFAULT_CONFIG_PATH),
        help="path to the JSON config file (server, localPort, localID)",
    )
    args = p.parse_args(argv)

    configure_structured_logging()

    # Startup failures are fatal; per-attempt failures are handled by the driver.
    try:
        cfg = load_client_config(args.config)
        print(f"server: {cfg.server}\nlocal port: {cfg.local_port}\nlocal id: {cfg.local_id}")
        agent = PunchAgent(cfg=cfg)
        address = agent.start()
    except PunchError as e:
        log_event(log, "agent_startup_failed", kind=e.kind.value, reason=e.reason, details=e.details)
        print(f"startup failed: {e}", file=sys.stderr)
        return 1

    print(f"registered as {cfg.local_id} at {address}")
    run_driver(agent)
    return 0


if __name__ == "__main__":
    sys.exit(main())
