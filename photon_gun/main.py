"""Entry point for the photon-gun registry — server + operator CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import uvicorn
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel

from photon_gun.agent.client import RegistryClient, RegistryError, RegistryUnavailableError
from photon_gun.api.server import build_service
from photon_gun.config import settings
from photon_gun.registry.seed import apply_seed, load_seed_file
from photon_gun.registry.service import InvalidArgumentError

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(
        Panel(f"Starting photon-gun registry (store: {settings.database_path})", style="bold green")
    )
    uvicorn.run(
        "photon_gun.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_seed(path: str) -> None:
    """Bulk-create healthchecks from a YAML seed file into the local store."""
    try:
        entries = load_seed_file(Path(path))
        created = apply_seed(build_service(settings), entries)
    except (InvalidArgumentError, OSError) as e:
        console.print(f"[red]error:[/red] {e}")
        sys.exit(1)
    print_json(created)


def print_json(data: Any) -> None:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    elif isinstance(data, list):
        data = [d.model_dump(by_alias=True) if isinstance(d, BaseModel) else d for d in data]
    console.print_json(json.dumps(data))


def run_remote(addr: str, call: Callable[[RegistryClient], Awaitable[Any]]) -> None:
    """Run one registry call and print the response (or "Ok" for empty ones)."""

    async def _run() -> Any:
        async with RegistryClient(addr) as client:
            return await call(client)

    try:
        result = asyncio.run(_run())
    except RegistryError as e:
        console.print(f"[red]error:[/red] {e.detail}")
        sys.exit(1)
    except RegistryUnavailableError as e:
        console.print(f"[red]error:[/red] {e}")
        sys.exit(1)

    if result is None:
        console.print("Ok")
    else:
        print_json(result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="photon-gun healthcheck registry")
    parser.add_argument(
        "--addr",
        default=f"http://127.0.0.1:{settings.api_port}",
        help="Registry base URL for operator commands",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the registry API server")

    seed = sub.add_parser("seed", help="Create healthchecks from a YAML file (local store)")
    seed.add_argument("file")

    sub.add_parser("ping", help="Check that the registry is up")

    for name in ("get", "delete", "enable", "disable"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a healthcheck")
        p.add_argument("id", type=int)

    ls = sub.add_parser("list", help="List healthchecks")
    ls.add_argument("--disabled", action="store_true", help="List disabled checks instead")
    ls.add_argument("--all", action="store_true", help="List enabled and disabled checks")
    ls.add_argument("--limit", type=int)
    ls.add_argument("--after", type=int, metavar="ID", help="Only checks with an id above ID (next page)")

    results = sub.add_parser("results", help="List recent results of a healthcheck")
    results.add_argument("id", type=int)
    results.add_argument("--limit", type=int)

    summary = sub.add_parser("summary", help="Pass/fail counts per time window")
    summary.add_argument("id", type=int)
    summary.add_argument("--resolution", default="minute")

    create = sub.add_parser("create", help="Create a healthcheck")
    create.add_argument("endpoint")
    create.add_argument("--name")
    create.add_argument("--interval", type=int, default=5)
    create.add_argument("--disabled", action="store_true")

    update = sub.add_parser("update", help="Update fields of a healthcheck")
    update.add_argument("id", type=int)
    update.add_argument("--name")
    update.add_argument("--endpoint")
    update.add_argument("--interval", type=int)

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "seed":
        run_seed(args.file)
    elif args.command == "ping":
        run_remote(args.addr, lambda c: c.ping())
    elif args.command == "get":
        run_remote(args.addr, lambda c: c.get_healthcheck(args.id))
    elif args.command == "list":
        enabled = None if args.all else not args.disabled
        run_remote(
            args.addr,
            lambda c: c.list_healthchecks(enabled=enabled, limit=args.limit, after_id=args.after),
        )
    elif args.command == "results":
        run_remote(args.addr, lambda c: c.list_healthcheck_results(args.id, limit=args.limit))
    elif args.command == "summary":
        run_remote(args.addr, lambda c: c.summarize_healthcheck_results(args.id, args.resolution))
    elif args.command == "create":
        run_remote(
            args.addr,
            lambda c: c.create_healthcheck(
                args.endpoint, args.interval, name=args.name, enabled=not args.disabled,
            ),
        )
    elif args.command == "update":
        run_remote(
            args.addr,
            lambda c: c.update_healthcheck(
                args.id, name=args.name, endpoint=args.endpoint, interval=args.interval,
            ),
        )
    elif args.command == "delete":
        run_remote(args.addr, lambda c: c.delete_healthcheck(args.id))
    elif args.command == "enable":
        run_remote(args.addr, lambda c: c.enable_healthcheck(args.id))
    elif args.command == "disable":
        run_remote(args.addr, lambda c: c.disable_healthcheck(args.id))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
