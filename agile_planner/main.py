from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from agile_planner.context import PROVIDERS, ServerContext
from agile_planner.protocol.dispatcher import Dispatcher

EXIT_OK = 0
EXIT_ERROR_REPLY = 1
EXIT_NO_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Agile Planner MCP server (one request per run)")
    parser.add_argument("--mode", choices=["live", "mock"], default="live")
    parser.add_argument("--provider", choices=list(PROVIDERS), default="auto")
    parser.add_argument("--output-root", help="Default directory for generated backlogs")
    parser.add_argument("--max-output-tokens", type=int, default=None)
    parser.add_argument("--temperature", type=float, default=None)
    parser.add_argument("--message", help="JSON-RPC request to handle instead of reading stdin")
    parser.add_argument(
        "--mock-scenario",
        choices=["default", "invalid", "empty"],
        default="default",
        help="Canned behaviour of the offline client in mock mode",
    )
    return parser


def _read_request(args: argparse.Namespace) -> str:
    if args.message is not None:
        return args.message
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(Path.cwd() / ".env")

    if args.max_output_tokens is not None:
        os.environ["AGILE_PLANNER_MAX_OUTPUT_TOKENS"] = str(args.max_output_tokens)
    if args.temperature is not None:
        os.environ["AGILE_PLANNER_TEMPERATURE"] = str(args.temperature)

    raw = _read_request(args)
    if not raw.strip():
        print("[main] no request received on stdin or --message", file=sys.stderr)
        return EXIT_NO_INPUT

    context = ServerContext(
        mode=args.mode,
        provider=args.provider,
        mock_scenario=args.mock_scenario,
        output_root=Path(args.output_root) if args.output_root else None,
    )
    reply = Dispatcher(context).dispatch(raw)
    sys.stdout.write(json.dumps(reply, ensure_ascii=False) + "\n")
    sys.stdout.flush()
    return EXIT_ERROR_REPLY if "error" in reply else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
