#!/usr/bin/env python3
"""
Run the synchronizer against in-memory stores.

This script loads records from a YAML or JSON file into an in-memory source,
then runs the scheduler for a fixed duration:
- The first pass is a full sync (safe or naive, per configuration)
- Later ticks run delta syncs for keys passed with --touch
- A summary of the target is printed at the end

Usage:
    python scripts/run_sync.py --seed records.yaml [--config CONFIG_PATH]
        [--duration SECONDS] [--touch KEY ...] [--mode safe|naive]
"""

import argparse
import asyncio
import sys

import structlog
import yaml

from recordsync.exceptions import ConfigurationError
from recordsync.storage.memory import InMemoryStore
from recordsync.sync.events import LoggingObserver
from recordsync.sync.scheduler import SyncScheduler
from recordsync.utils.config_loader import ConfigLoader
from recordsync.utils.logging_config import configure_from_config

log = structlog.stdlib.get_logger()


def load_seed_records(path: str) -> list[dict]:
    """Read a list of records from a YAML (or JSON, which YAML accepts) file."""
    with open(path, "r") as f:
        records = yaml.safe_load(f) or []
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ConfigurationError(f"Seed file must contain a list of mappings: {path}")
    return records


async def run(args: argparse.Namespace) -> dict:
    loader = ConfigLoader()
    config = loader.load_config(args.config)
    if args.mode:
        config.sync.full_sync_mode = args.mode
    if args.interval:
        config.sync.poll_interval = args.interval
    loader.validate_config(config)
    configure_from_config(config.logging)

    key_field = config.sync.key_field
    source = InMemoryStore(name="source", unique_fields=(key_field,))
    target = InMemoryStore(name="target", unique_fields=(key_field,))

    for record in load_seed_records(args.seed) if args.seed else []:
        await source.insert(record)

    scheduler = SyncScheduler(
        source,
        target,
        config=config,
        observers=[LoggingObserver(include_record=args.verbose)],
    )

    async with scheduler:
        for key in args.touch:
            matched = await source.update({key_field: key}, {"$set": {"touched": True}})
            if matched:
                scheduler.notify_changed(key)
            else:
                log.warning("touch_key_not_found", key=key)
        await asyncio.sleep(args.duration)

    return {
        "state": scheduler.state.value,
        "source_records": len(source),
        "target_records": len(target),
        "ticks": scheduler.tick_count,
        "tick_errors": scheduler.tick_errors,
        "pending_changes": len(scheduler.tracker),
        "events_sent": scheduler.events.dispatched,
    }


def main():
    """Main entry point for the sync runner."""
    parser = argparse.ArgumentParser(description="Run record synchronization on in-memory stores")
    parser.add_argument("--config", type=str, default=None, help="Path to configuration file")
    parser.add_argument("--seed", type=str, default=None, help="YAML/JSON file of source records")
    parser.add_argument(
        "--duration", type=float, default=15.0, help="Seconds to keep polling before stopping"
    )
    parser.add_argument("--interval", type=float, default=None, help="Override poll interval")
    parser.add_argument(
        "--mode", choices=["safe", "naive"], default=None, help="Override full sync mode"
    )
    parser.add_argument(
        "--touch", nargs="*", default=[], help="Business keys to modify after the full sync"
    )
    parser.add_argument("--verbose", action="store_true", help="Log full records per event")

    args = parser.parse_args()

    try:
        stats = asyncio.run(run(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    print("\n" + "=" * 60)
    print("SYNCHRONIZATION SUMMARY")
    print("=" * 60)
    print(f"State: {stats['state']}")
    print(f"Source Records: {stats['source_records']}")
    print(f"Target Records: {stats['target_records']}")
    print(f"Ticks: {stats['ticks']} ({stats['tick_errors']} failed)")
    print(f"Pending Changes: {stats['pending_changes']}")
    print(f"Events Sent: {stats['events_sent']}")
    print("=" * 60)

    sys.exit(0 if stats["state"] == "synced" and stats["tick_errors"] == 0 else 1)


if __name__ == "__main__":
    main()
