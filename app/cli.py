"""
Operator command line: sync, status, event audit, replay and serve.

    python -m app.cli sync stripe --resources customers,products
    python -m app.cli status shopify
    python -m app.cli events stripe --limit 20
    python -m app.cli replay stripe --max-retries 3
    python -m app.cli serve --port 8000
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from collections.abc import Sequence
from typing import Any

from app.config import get_sync_settings
from app.domain.resources import UnknownResourceError
from app.domain.sync import SyncAlreadyRunningError
from app.services.provider_registry import UnknownProviderError, get_provider_runtime


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _split_resources(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [name.strip() for name in raw.split(",") if name.strip()]


def _cmd_sync(args: argparse.Namespace) -> int:
    runtime = get_provider_runtime(args.provider)
    run = runtime.orchestrator.sync(_split_resources(args.resources))
    _print_json(run.to_dict())
    return 0 if run.success else 1


def _cmd_status(args: argparse.Namespace) -> int:
    sync_status = get_provider_runtime(args.provider).orchestrator.status()
    _print_json(
        {
            "provider": sync_status.provider,
            "counts": sync_status.counts,
            "total": sum(sync_status.counts.values()),
            "last_synced_at": sync_status.last_synced_at,
        }
    )
    return 0


def _cmd_events(args: argparse.Namespace) -> int:
    runtime = get_provider_runtime(args.provider)
    if args.summary:
        _print_json(runtime.events.summary(runtime.provider))
        return 0

    events = runtime.events.list_events(runtime.provider, limit=args.limit)
    _print_json(
        [
            {
                "id": event.id,
                "event_type": event.event_type,
                "object": f"{event.object_type}:{event.object_id}",
                "received_at": event.received_at,
                "processed": event.processed,
                "error": event.error,
                "retry_count": event.retry_count,
            }
            for event in events
        ]
    )
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    runtime = get_provider_runtime(args.provider)
    summary = runtime.reconciler.replay_failed(
        limit=args.limit,
        max_retries=args.max_retries if args.max_retries is not None else get_sync_settings().replay_max_retries,
    )
    _print_json(
        {
            "provider": summary.provider,
            "attempted": summary.attempted,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "errors": summary.errors,
        }
    )
    return 0 if summary.failed == 0 else 1


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="app.cli", description="Mirror Stripe and Shopify data locally.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run a sync for one provider.")
    sync_parser.add_argument("provider")
    sync_parser.add_argument(
        "--resources",
        default=None,
        help="Comma-separated resource types; defaults to the provider's core set.",
    )
    sync_parser.set_defaults(handler=_cmd_sync)

    status_parser = subparsers.add_parser("status", help="Show mirrored record counts.")
    status_parser.add_argument("provider")
    status_parser.set_defaults(handler=_cmd_status)

    events_parser = subparsers.add_parser("events", help="List recent webhook events.")
    events_parser.add_argument("provider")
    events_parser.add_argument("--limit", type=int, default=20)
    events_parser.add_argument("--summary", action="store_true", help="Show per-type counts instead.")
    events_parser.set_defaults(handler=_cmd_events)

    replay_parser = subparsers.add_parser("replay", help="Re-dispatch failed webhook events.")
    replay_parser.add_argument("provider")
    replay_parser.add_argument("--limit", type=int, default=100)
    replay_parser.add_argument("--max-retries", dest="max_retries", type=int, default=None)
    replay_parser.set_defaults(handler=_cmd_replay)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server.")
    serve_parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    serve_parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    serve_parser.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        return args.handler(args)
    except (UnknownProviderError, UnknownResourceError) as exc:
        print(f"error: {exc}")
        return 2
    except SyncAlreadyRunningError as exc:
        print(f"error: {exc}")
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
