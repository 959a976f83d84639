"""
CLI main entry point.
"""

import argparse
import logging
import sqlite3
import sys
from pathlib import Path

from ..bunq_client import BunqError
from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..services import (
    BankSyncError,
    BankSyncService,
    CategoryResolutionError,
    IdentityBootstrapError,
    SessionRenewalError,
)
from ..state_store import StateStore

logger = logging.getLogger(__name__)

# Failures that end a command with exit code 1 and a one-line message
HARD_FAILURES = (
    BankSyncError,
    BunqError,
    CategoryResolutionError,
    ConfigValidationError,
    IdentityBootstrapError,
    SessionRenewalError,
)


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
        prog="bunq-sync",
        description="Import bunq payments into the household ledger",
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

    # init command
    subparsers.add_parser("init", help="Write a default config file")

    # setup command
    setup_parser = subparsers.add_parser(
        "setup", help="Register a new bunq installation, device and session for a household"
    )
    setup_parser.add_argument("--household", required=True, help="Household id")

    # accounts command
    accounts_parser = subparsers.add_parser(
        "accounts", help="List the household's bunq accounts for mapping"
    )
    accounts_parser.add_argument("--household", required=True, help="Household id")

    # map command
    map_parser = subparsers.add_parser(
        "map", help="Link a local account to a bunq monetary account"
    )
    map_parser.add_argument("--household", required=True, help="Household id")
    map_parser.add_argument("--account", required=True, help="Local account id")
    map_parser.add_argument(
        "--remote-account",
        type=int,
        required=True,
        help="bunq monetary account id (see 'accounts')",
    )

    # sync command
    sync_parser = subparsers.add_parser(
        "sync", help="Import new payments (all households unless --household is given)"
    )
    sync_parser.add_argument("--household", help="Only sync this household")
    sync_parser.add_argument(
        "--date-from",
        type=str,
        default=None,
        help="Earliest payment date to import, YYYY-MM-DD (default: from config)",
    )

    # status command
    subparsers.add_parser("status", help="Show state store statistics")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP trigger endpoint")
    serve_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the web server (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the web server (default: 8080)",
    )

    return parser


def _service(config: Config) -> BankSyncService:
    return BankSyncService.from_config(config, StateStore(config.state_db_path))


def cmd_setup(config: Config, household_id: str) -> int:
    """Bootstrap a household's bunq identity."""
    print(f"🔐 Setting up bunq for household {household_id}...")
    connection = _service(config).setup(household_id)
    print(f"✓ Connected as bunq user {connection.session_user_id}")
    return 0


def cmd_accounts(config: Config, household_id: str) -> int:
    """List bunq accounts."""
    accounts = _service(config).discover_accounts(household_id)

    print(f"\n🏦 bunq accounts for household {household_id}")
    print("=" * 60)
    for account in accounts:
        if not account.is_known:
            print("  [?]      (unknown account type)")
            continue
        balance = f"{account.balance} {account.currency or ''}".strip() if account.balance is not None else "-"
        print(
            f"  [{account.remote_id}] {account.type:<10} {account.description or '':<24} "
            f"{account.iban or '-':<22} {balance}"
        )
    print(f"\n✓ Found {len(accounts)} account(s)")
    return 0


def cmd_map(config: Config, household_id: str, account_id: str, remote_account_id: int) -> int:
    """Create an account mapping."""
    store = StateStore(config.state_db_path)

    connection = store.get_connection(household_id)
    if connection is None:
        print(f"❌ No bunq connection for household {household_id}. Run setup first.")
        return 1
    if store.get_account(account_id) is None:
        print(f"❌ Unknown local account {account_id}")
        return 1

    try:
        mapping_id = store.add_account_mapping(connection.id, account_id, remote_account_id)
    except sqlite3.IntegrityError:
        print(f"❌ bunq account {remote_account_id} is already mapped for household {household_id}")
        return 1
    print(f"✓ Mapped bunq account {remote_account_id} → {account_id} (mapping {mapping_id})")
    return 0


def cmd_sync(config: Config, household_id: str | None, date_from: str | None) -> int:
    """Import payments."""
    service = _service(config)

    if household_id:
        result = service.sync(household_id, date_from)
        print(f"\n📥 Household {household_id} since {result.date_from}")
        if result.accounts is not None:
            print("⚠️  No account mappings yet; available bunq accounts:")
            for account in result.accounts:
                print(f"   [{account.remote_id}] {account.description} {account.iban or ''}")
            return 0
        for m in result.mappings:
            status = f"❌ {m.error}" if m.error else "✓"
            print(
                f"  {status} bunq {m.bunq_monetary_account_id} → {m.account_id}: "
                f"{m.imported} imported, {m.skipped} skipped"
            )
        print(f"\n✓ Imported {result.imported} transaction(s)")
        return 0

    run = service.sync_all(date_from)
    if run.message:
        print(f"ℹ️  {run.message}")
    for h in run.households:
        print(f"  🏠 {h.household_id}: {h.imported} imported")
    for error in run.errors:
        print(f"  ❌ {error}")
    print(f"\n✓ Imported {run.imported} transaction(s) since {run.date_from}")
    return 0


def cmd_status(config: Config) -> int:
    """Show store statistics."""
    stats = StateStore(config.state_db_path).get_stats()

    print("\n📊 bunq sync status")
    print("=" * 40)
    print(f"  Connections:       {stats['connections']}")
    print(f"  Account mappings:  {stats['account_mappings']}")
    print(f"  Local accounts:    {stats['accounts']}")
    print(f"  Subcategories:     {stats['subcategories']}")
    print(f"  Transactions:      {stats['transactions']}")
    print()
    return 0


def cmd_serve(config_path: Path, host: str, port: int) -> int:
    """Start the HTTP trigger."""
    from ..web.app import run_server

    try:
        run_server(host=host, port=port, config_path=str(config_path))
    except KeyboardInterrupt:
        print("\n✓ Server stopped")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init":
        if parsed.config.exists():
            print(f"❌ {parsed.config} already exists")
            return 1
        create_default_config(parsed.config)
        print(f"✓ Wrote {parsed.config}")
        return 0

    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    if parsed.command == "serve":
        return cmd_serve(parsed.config, parsed.host, parsed.port)

    try:
        if parsed.command == "setup":
            return cmd_setup(config, parsed.household)
        elif parsed.command == "accounts":
            return cmd_accounts(config, parsed.household)
        elif parsed.command == "map":
            return cmd_map(config, parsed.household, parsed.account, parsed.remote_account)
        elif parsed.command == "sync":
            return cmd_sync(config, parsed.household, parsed.date_from)
        elif parsed.command == "status":
            return cmd_status(config)
    except HARD_FAILURES as e:
        logger.debug("Command %s failed", parsed.command, exc_info=True)
        print(f"❌ {e}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
