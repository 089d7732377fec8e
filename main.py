"""
CLI entry point for batchfetch.

Usage:
    python main.py simulate --scheduler window --delay-ms 10 --queries 1,2,2,3 --spacing-ms 2
    python main.py simulate --scheduler buffer --delay-ms 20 --metrics
    python main.py config
"""

import argparse
import asyncio
import json
from dataclasses import asdict

from batchfetch import create
from batchfetch.batching.scheduler import scheduler_from_settings
from batchfetch.config import BatcherSettings, get_settings
from batchfetch.logs import configure_logging
from batchfetch.observability import EventRecorder, MetricsCollector, MultiObserver


async def _simulate(args) -> dict:
    """Fire the requested queries against an in-memory fetcher."""
    calls = []

    async def fetcher(ids):
        calls.append(list(ids))
        await asyncio.sleep(args.fetch_ms / 1000.0)
        return [{"id": i, "value": f"item-{i}"} for i in ids]

    scheduler = scheduler_from_settings(
        BatcherSettings(
            scheduler=args.scheduler,
            delay_ms=args.delay_ms,
            max_wait_ms=args.max_wait_ms,
        )
    )
    recorder = EventRecorder()
    observer = MultiObserver(recorder)
    metrics = None
    if args.metrics:
        metrics = MetricsCollector()
        observer.add(metrics)

    batcher = create(
        fetcher=fetcher,
        resolver="id",
        scheduler=scheduler,
        name="simulate",
        observer=observer,
    )

    futures = []
    for i, query in enumerate(args.queries):
        if i and args.spacing_ms:
            await asyncio.sleep(args.spacing_ms / 1000.0)
        futures.append(batcher.fetch(query))
    results = await asyncio.gather(*futures)

    report = {
        "fetcher_calls": calls,
        "results": results,
        "batches": [
            record.model_dump(exclude={"data"})
            for record in recorder.batches(batcher.name)
        ],
        "stats": batcher.stats(),
    }
    if metrics is not None:
        report["metrics"] = metrics.get_summary()
    return report


def cmd_simulate(args):
    """Run a simulated batching session and print the outcome."""
    report = asyncio.run(_simulate(args))
    print(json.dumps(report, indent=2, default=str))


def cmd_config(args):
    """Print the effective settings."""
    print(json.dumps(asdict(get_settings()), indent=2))


def _parse_queries(raw: str):
    queries = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        queries.append(int(part) if part.lstrip("-").isdigit() else part)
    return queries


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="batchfetch - coalesce concurrent fetches into batches",
    )
    parser.add_argument(
        "--log-level",
        default=settings.logging.level,
        help="Logging level (default from settings)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # simulate
    p_sim = subparsers.add_parser("simulate", help="Simulate batched fetches")
    p_sim.add_argument(
        "--scheduler",
        choices=["window", "buffer", "capped"],
        default=settings.batcher.scheduler,
    )
    p_sim.add_argument("--delay-ms", type=int, default=settings.batcher.delay_ms)
    p_sim.add_argument("--max-wait-ms", type=int, default=settings.batcher.max_wait_ms)
    p_sim.add_argument(
        "--queries",
        type=_parse_queries,
        default=[1, 2, 2, 3, 4],
        help="Comma-separated queries, e.g. 1,2,2,3",
    )
    p_sim.add_argument("--spacing-ms", type=int, default=2)
    p_sim.add_argument("--fetch-ms", type=int, default=5)
    p_sim.add_argument("--metrics", action="store_true")

    # config
    subparsers.add_parser("config", help="Show effective settings")

    args = parser.parse_args()
    configure_logging(settings.logging, level=args.log_level)

    if args.command == "simulate":
        cmd_simulate(args)
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
