from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Iterable
from dataclasses import asdict
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from schrodrive.domain.entities.errors import SchroDriveError
from schrodrive.domain.entities.search import SearchOptions
from schrodrive.infrastructure.config import AppConfig, load_config
from schrodrive.infrastructure.config.schema import split_csv
from schrodrive.infrastructure.logging.setup import configure_logging
from schrodrive.interfaces.app import create_app
from schrodrive.interfaces.composition import Services, build_http_client, build_services

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="schrodrive")

    # Config wiring flags (no business logic)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP app (default).")
    serve.add_argument("--host", default=None, help="Bind host (overrides HOST env).")
    serve.add_argument(
        "--port", default=None, type=int, help="Bind port (overrides PORT env)."
    )

    search = sub.add_parser("search", help="Search the active indexer.")
    search.add_argument("query")
    search.add_argument("-c", "--categories", default=None, help="Comma-separated ids.")
    search.add_argument("-i", "--indexers", default=None, help="Comma-separated indexer ids.")
    search.add_argument("-l", "--limit", default=None, type=int)

    add = sub.add_parser("add", help="Add a magnet, or search and add the best result.")
    source = add.add_mutually_exclusive_group(required=True)
    source.add_argument("-m", "--magnet", default=None)
    source.add_argument("-q", "--query", default=None)
    add.add_argument("-n", "--name", default=None, help="Display name for --magnet.")
    add.add_argument("-c", "--categories", default=None, help="Comma-separated ids.")
    add.add_argument("-p", "--provider", default=None, choices=["torbox", "realdebrid"])

    scan = sub.add_parser("scan-dead", help="Re-add dead torrents on another provider.")
    scan.add_argument("--watch", action="store_true", help="Keep scanning on an interval.")

    poll = sub.add_parser("poll", help="Acquire approved Overseerr requests.")
    poll.add_argument("--watch", action="store_true", help="Keep polling on an interval.")

    return parser.parse_args(argv)


def _emit(data: Any) -> None:
    sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")
    sys.stdout.flush()


async def _search(services: Services, args: argparse.Namespace) -> Any:
    options = SearchOptions(
        categories=tuple(split_csv(args.categories)),
        indexer_ids=tuple(split_csv(args.indexers)),
        limit=args.limit,
    )
    results = await services.indexer.search(args.query, options)
    best = services.indexer.pick_best(results)
    return {
        "provider": services.indexer.provider_name(),
        "count": len(results),
        "best": asdict(best) if best else None,
        "magnet": await services.indexer.get_magnet_or_resolve(best),
        "results": [asdict(r) for r in results],
    }


async def _add(services: Services, args: argparse.Namespace) -> Any:
    if args.magnet:
        outcome = await services.acquire.add_magnet_direct(
            args.magnet, args.name, provider=args.provider
        )
    else:
        outcome = await services.acquire.acquire(
            args.query, split_csv(args.categories), provider=args.provider
        )
    return outcome.to_dict()


async def _scan_dead(services: Services, args: argparse.Namespace) -> Any:
    if args.watch:
        await services.scanner.run_forever()
    return (await services.scanner.scan_dead_once()).to_dict()


async def _poll(services: Services, args: argparse.Namespace) -> Any:
    if not services.overseerr.is_configured():
        raise SchroDriveError("overseerr url/api_key are required for poll")
    if args.watch:
        await services.poller.run_forever()
    return asdict(await services.poller.poll_once())


_COMMANDS = {
    "search": _search,
    "add": _add,
    "scan-dead": _scan_dead,
    "poll": _poll,
}


async def _run_command(config: AppConfig, args: argparse.Namespace) -> int:
    async with build_http_client(config) as http_client:
        services = build_services(config, http_client)
        try:
            result = await _COMMANDS[args.command](services, args)
        except SchroDriveError as e:
            log.error("command_failed", command=args.command, error=str(e))
            _emit({"error": str(e), "error_type": type(e).__name__})
            return 1
    _emit(result)
    return 0


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Config is loaded exactly once here, then handed to the app or command.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)
    command = args.command or "serve"

    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=cli_overrides,
    )

    log_config = configure_logging(config)

    if command == "serve":
        host = getattr(args, "host", None) or os.getenv("HOST", "0.0.0.0")
        port = int(getattr(args, "port", None) or os.getenv("PORT", "8978"))
        uvicorn.run(create_app(config), host=host, port=port, log_config=log_config)
        return 0

    try:
        return asyncio.run(_run_command(config, args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(start())
