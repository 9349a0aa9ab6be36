#!/usr/bin/env python3
"""Management script for hostwatch database and collector operations."""

import os
import sys
import argparse
from pathlib import Path

# Add current directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

from config import config
from hostwatch.database.database import DatabaseManager
from hostwatch.database.store import MetricStore


def _open_store(args) -> MetricStore:
    config_name = args.env or os.environ.get('FLASK_ENV', 'default')
    app_config = config[config_name]()

    print(f"Configuration: {config_name}")
    print(f"Database URL: {app_config.DATABASE_URL}")

    db_manager = DatabaseManager(
        database_url=app_config.DATABASE_URL,
        echo=args.verbose
    )
    store = MetricStore(db_manager)
    store.initialize()
    return store


def init_db(args):
    """Initialize database, create tables and seed default alert rules."""
    from hostwatch.monitoring.alerts import default_alert_rules

    store = _open_store(args)
    print("Database tables created successfully")

    if store.count_alert_rules() == 0:
        count = store.seed_alert_rules(default_alert_rules())
        print(f"Seeded {count} default alert rules")


def db_info(args):
    """Show database information."""
    store = _open_store(args)
    info = store.database_info()

    if info['size_bytes'] is not None:
        print(f"Database size: {info['size_bytes'] / 1024:.2f} KB")
    print(f"Samples: {info['sample_count']}")
    print(f"Distinct metrics: {info['metric_count']}")
    if info['oldest_timestamp'] is not None:
        print(f"Time range: {info['oldest_timestamp']} - {info['newest_timestamp']}")

    states = store.get_all_collector_states()
    enabled = sorted(cid for cid, on in states.items() if on)
    print(f"Enabled collectors: {', '.join(enabled) or '(none)'}")
    print(f"Alert rules: {store.count_alert_rules()}")
    print(f"Dashboard layouts: {store.count_layouts()}")


def purge(args):
    """Delete old or all samples."""
    store = _open_store(args)

    if args.all:
        if not args.yes:
            response = input("Delete ALL stored samples? (y/N): ")
            if response.lower() != 'y':
                print("Purge cancelled")
                return
        deleted = store.purge_all_samples()
    else:
        deleted = store.purge_older_than(args.hours)

    print(f"Deleted {deleted} samples")


def rules(args):
    """List alert rules, optionally seeding the defaults first."""
    from hostwatch.monitoring.alerts import default_alert_rules

    store = _open_store(args)

    if args.seed:
        if store.count_alert_rules() > 0:
            print("Alert rules already present, not seeding")
        else:
            count = store.seed_alert_rules(default_alert_rules())
            print(f"Seeded {count} default alert rules")

    for rule in store.list_alert_rules():
        state = 'on ' if rule.enabled else 'off'
        print(f"  [{state}] #{rule.id} {rule.metric_pattern} {rule.operator} {rule.threshold:g} ({rule.severity})")


def discover(args):
    """Run every collector once and list the metrics it produces."""
    from hostwatch.monitoring.collectors import default_collectors
    from hostwatch.monitoring.registry import Registry

    store = _open_store(args)
    registry = Registry(store)
    for collector in default_collectors():
        registry.register(collector)

    registry.discover_metrics()

    for info in registry.list_collectors():
        print(f"{info.id} ({info.impact}): {len(info.metrics)} metrics")
        if args.verbose:
            for name in info.metrics:
                print(f"  {name}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="hostwatch management")
    parser.add_argument('--env', choices=['development', 'production', 'testing'],
                        help='Configuration environment')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Init command
    subparsers.add_parser('init', help='Initialize database')

    # Info command
    subparsers.add_parser('info', help='Show database information')

    # Purge command
    purge_parser = subparsers.add_parser('purge', help='Delete stored samples')
    purge_group = purge_parser.add_mutually_exclusive_group()
    purge_group.add_argument('--hours', type=int, default=24,
                             help='Delete samples older than N hours (default: 24)')
    purge_group.add_argument('--all', action='store_true',
                             help='Delete every sample')
    purge_parser.add_argument('--yes', '-y', action='store_true',
                              help='Skip confirmation')

    # Rules command
    rules_parser = subparsers.add_parser('rules', help='List alert rules')
    rules_parser.add_argument('--seed', action='store_true',
                              help='Seed default rules if none exist')

    # Discover command
    subparsers.add_parser('discover', help='Discover metrics available on this host')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == 'init':
            init_db(args)
        elif args.command == 'info':
            db_info(args)
        elif args.command == 'purge':
            purge(args)
        elif args.command == 'rules':
            rules(args)
        elif args.command == 'discover':
            discover(args)
        else:
            print(f"Unknown command: {args.command}")
            sys.exit(1)

    except Exception as e:
        print(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
