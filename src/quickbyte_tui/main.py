#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .app import QuickByteApp
from .config import load_config, setup_logging

logger = logging.getLogger("quickbyte")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="QuickByte news client")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--theme", type=str, help="Textual theme for this run")
    parser.add_argument("--base-url", type=str, help="QuickByte backend URL")
    parser.add_argument(
        "--page-size", type=int, help="Articles per page (default from config, 12)"
    )
    return parser


# --- Entrypoint ---
def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    debug_path = setup_logging(args.debug)
    if debug_path:
        print(f"Debug logging enabled: {debug_path}", file=sys.stderr)

    config = load_config()
    if args.base_url:
        config["base_url"] = args.base_url
    if args.page_size:
        config["page_size"] = args.page_size

    theme_name = args.theme or config.get("theme")
    logger.info("Using theme: %s", theme_name)

    try:
        app = QuickByteApp(config=config, theme=theme_name)
        app.run()
    except Exception as e:
        logger.exception("Application crashed: %s", e)
        print(f"Application crashed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
