"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..detection import ConflictDetector
from ..resolution import ConflictResolutionError
from ..scanning import QueueScheduler
from ..schemas import ConflictPair, Resolution, Transaction
from ..transactions_client import PersistenceError, TransactionsClient

logger = logging.getLogger(__name__)

RESOLUTION_CHOICES = [r.value for r in Resolution]


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="txn-conflicts",
        description="Detect and resolve duplicates between manual and bank-imported transactions",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="List potential conflicts")
    _add_input_argument(scan_parser)
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Print conflicts as JSON",
    )

    # resolve command
    resolve_parser = subparsers.add_parser("resolve", help="Resolve a single conflict")
    resolve_parser.add_argument(
        "manual_id",
        type=str,
        help="ID of the manual transaction in the conflict",
    )
    _add_resolution_argument(resolve_parser)
    _add_input_argument(resolve_parser)

    # resolve-all command
    resolve_all_parser = subparsers.add_parser(
        "resolve-all", help="Resolve every conflict with the same resolution"
    )
    _add_resolution_argument(resolve_all_parser)
    _add_input_argument(resolve_all_parser)
    resolve_all_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the batch that would be submitted without submitting it",
    )

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    return parser


def _add_input_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help="Read transactions from a JSON file instead of the API",
    )


def _add_resolution_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--resolution",
        "-r",
        choices=RESOLUTION_CHOICES,
        required=True,
        help="How to resolve: keep-both, keep-manual or keep-bank",
    )


def load_transactions(client: TransactionsClient, input_path: Path | None) -> list[Transaction]:
    """Load the transaction snapshot from a file or the API."""
    if input_path is None:
        return client.list_transactions()

    with open(input_path) as f:
        data = json.load(f)
    items = data.get("data", []) if isinstance(data, dict) else data
    return [Transaction.from_dict(item) for item in items]


def run_scan(detector: ConflictDetector, scheduler: QueueScheduler, transactions) -> None:
    """Scan a snapshot to completion on a cooperative scheduler."""
    detector.update_transactions(transactions)
    turns = scheduler.run_until_idle()
    logger.debug("Scan finished after %d scheduler turn(s)", turns)


def format_conflict(conflict: ConflictPair) -> str:
    """One-line summary of a conflict pair."""
    manual = conflict.manual
    imported = conflict.imported
    return (
        f"[{manual.id}] {manual.date} {manual.amount / 100:.2f} {manual.display_payee!r}"
        f"  <->  [{imported.id}] {imported.date} {imported.amount / 100:.2f}"
        f" {imported.display_payee!r}  ({conflict.conflict_type.value}, {conflict.score:.0%})"
    )


def _build(config: Config):
    client = TransactionsClient.from_config(config.api)
    scheduler = QueueScheduler()

    def on_conflict_found(conflicts: list[ConflictPair]) -> None:
        logger.info("Found %d potential conflict(s)", len(conflicts))

    def notify(message: str) -> None:
        print(f"❌ {message}", file=sys.stderr)

    detector = ConflictDetector(
        client=client,
        scheduler=scheduler,
        config=config.detection,
        on_conflict_found=on_conflict_found,
        notify=notify,
    )
    return client, scheduler, detector


def cmd_scan(config: Config, input_path: Path | None, as_json: bool) -> int:
    """Scan for conflicts and print them."""
    client, scheduler, detector = _build(config)

    try:
        transactions = load_transactions(client, input_path)
    except (OSError, ValueError, KeyError, TypeError, PersistenceError) as e:
        print(f"❌ Failed to load transactions: {e}")
        return 1

    with detector:
        run_scan(detector, scheduler, transactions)
        conflicts = detector.conflicts

    if as_json:
        print(json.dumps([c.to_dict() for c in conflicts], indent=2))
        return 0

    if not conflicts:
        print("✓ No conflicts found")
        return 0

    print(f"🔍 {len(conflicts)} potential conflict(s):")
    for conflict in conflicts:
        print(f"  {format_conflict(conflict)}")
    return 0


def cmd_resolve(
    config: Config,
    manual_id: str,
    resolution: str,
    input_path: Path | None,
) -> int:
    """Scan, then resolve a single conflict."""
    client, scheduler, detector = _build(config)

    try:
        transactions = load_transactions(client, input_path)
    except (OSError, ValueError, KeyError, TypeError, PersistenceError) as e:
        print(f"❌ Failed to load transactions: {e}")
        return 1

    with detector:
        run_scan(detector, scheduler, transactions)
        try:
            detector.resolve_conflict(manual_id, resolution)
        except ConflictResolutionError as e:
            print(f"❌ {e}")
            return 1
        except PersistenceError as e:
            print(f"❌ Resolution failed: {e}")
            return 1

    print(f"✓ Resolved conflict {manual_id} ({resolution})")
    return 0


def cmd_resolve_all(
    config: Config,
    resolution: str,
    input_path: Path | None,
    dry_run: bool,
) -> int:
    """Scan, then resolve every conflict in one batch."""
    client, scheduler, detector = _build(config)

    try:
        transactions = load_transactions(client, input_path)
    except (OSError, ValueError, KeyError, TypeError, PersistenceError) as e:
        print(f"❌ Failed to load transactions: {e}")
        return 1

    with detector:
        run_scan(detector, scheduler, transactions)
        conflicts = detector.conflicts

        if not conflicts:
            print("✓ No conflicts to resolve")
            return 0

        if dry_run:
            print(f"ℹ️  DRY RUN - would resolve {len(conflicts)} conflict(s) as {resolution}:")
            for conflict in conflicts:
                print(f"  {format_conflict(conflict)}")
            return 0

        try:
            detector.resolve_all_conflicts(resolution)
        except PersistenceError as e:
            print(f"❌ Batch resolution failed: {e}")
            return 1

    print(f"✓ Resolved {len(conflicts)} conflict(s) ({resolution})")
    return 0


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write the default config file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "scan":
        return cmd_scan(config, parsed.input, parsed.json)
    elif parsed.command == "resolve":
        return cmd_resolve(config, parsed.manual_id, parsed.resolution, parsed.input)
    elif parsed.command == "resolve-all":
        return cmd_resolve_all(config, parsed.resolution, parsed.input, parsed.dry_run)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
