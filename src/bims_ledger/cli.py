"""
Command-line interface for the BIMS ledger.

Provides CLI commands for ledger management:
- init-db: Initialize the block store schema and genesis block
- verify: Check link and digest integrity of the stored chain
- submit: Validate and append one transaction (JSON object)
- state-at: Print the inventory as it stood at a timestamp
- config: Print the effective configuration
- run: Start the API server

Usage:
    bims-ledger init-db
    bims-ledger verify
    bims-ledger submit '{"txType": "STOCK_IN", "itemSku": "SKU-1", ...}'
    bims-ledger state-at 2024-05-01T12:00:00Z
    bims-ledger run [--port PORT] [--host HOST]

Environment Variables:
    BIMS_HOST: Host to bind the API server (default: 0.0.0.0)
    BIMS_PORT: Port for the API server (default: 8000)
    BIMS_DB_PATH: SQLite file holding the chain
"""

import argparse
import json
import sys

from bims_ledger import __version__


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema and make sure a genesis block exists.

    Returns:
        0 on success, 1 on error
    """
    from bims_ledger.db.errors import DatabaseError
    from bims_ledger.db.schema import init_schema
    from bims_ledger.services import ledger_service

    try:
        init_schema()
        genesis = ledger_service.get_or_create_genesis()
    except DatabaseError as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1

    print("Database initialized successfully.")
    print(f"Genesis block: {genesis.hash}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """
    Verify the stored chain.

    Returns:
        0 if the chain is intact, 1 if it has been tampered with or cannot be read
    """
    from bims_ledger.db.errors import DatabaseError
    from bims_ledger.db.schema import init_schema
    from bims_ledger.services import ledger_service

    try:
        init_schema()
        result = ledger_service.verify_ledger()
    except DatabaseError as e:
        print(f"Error reading chain: {e}", file=sys.stderr)
        return 1

    if result.is_valid:
        print(f"Blockchain integrity verified ({result.block_count} blocks).")
        return 0

    print("CRITICAL: Chain has been tampered with!", file=sys.stderr)
    print(f"First invalid block: {result.failed_index}", file=sys.stderr)
    if result.error_detail:
        print(result.error_detail, file=sys.stderr)
    return 1


def cmd_submit(args: argparse.Namespace) -> int:
    """
    Validate and append one transaction.

    The transaction is given as a JSON object on the command line; actor
    fields may be supplied with ``--user-name`` / ``--user-id`` /
    ``--employee-id``.

    Returns:
        0 if the block was appended, 1 if rejected or on error
    """
    from bims_ledger.db.errors import DatabaseError
    from bims_ledger.db.schema import init_schema
    from bims_ledger.ledger.errors import ChainStructureError
    from bims_ledger.services import ledger_service

    try:
        payload = json.loads(args.transaction)
    except json.JSONDecodeError as e:
        print(f"Transaction is not valid JSON: {e}", file=sys.stderr)
        return 1
    if not isinstance(payload, dict):
        print("Transaction must be a JSON object.", file=sys.stderr)
        return 1

    actor = ledger_service.Actor(
        user_id=args.user_id, user_name=args.user_name, employee_id=args.employee_id
    )
    try:
        init_schema()
        result = ledger_service.submit_transaction(payload, actor=actor)
    except (DatabaseError, ChainStructureError, ledger_service.AppendConflictError) as e:
        print(f"Error appending transaction: {e}", file=sys.stderr)
        return 1

    if not result.accepted:
        print(f"Rejected: {result.error}", file=sys.stderr)
        return 1

    print(json.dumps(result.block.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_state_at(args: argparse.Namespace) -> int:
    """
    Print the inventory snapshot as of a timestamp.

    Returns:
        0 on success, 1 if the timestamp is invalid or on error
    """
    from bims_ledger.db.errors import DatabaseError
    from bims_ledger.db.schema import init_schema
    from bims_ledger.ledger.errors import InvalidTimestampError
    from bims_ledger.services import ledger_service

    try:
        init_schema()
        snapshot = ledger_service.snapshot_at(args.timestamp)
    except InvalidTimestampError as e:
        print(f"Invalid timestamp: {e}", file=sys.stderr)
        return 1
    except DatabaseError as e:
        print(f"Error reading chain: {e}", file=sys.stderr)
        return 1

    print(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    from bims_ledger.config import print_config_summary

    print_config_summary()
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server in the foreground.

    Returns:
        0 on clean shutdown, 1 on error
    """
    from bims_ledger.api.server import start_server

    try:
        start_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0
    except OSError as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    from bims_ledger.config import configure_logging

    parser = argparse.ArgumentParser(
        prog="bims-ledger",
        description="BIMS Ledger - blockchain-backed inventory management",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Create the block store tables and the genesis block if missing.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify chain integrity",
        description="Recompute every block digest and check every link. Exits 1 on tampering.",
    )
    verify_parser.set_defaults(func=cmd_verify)

    # submit command
    submit_parser = subparsers.add_parser(
        "submit",
        help="Validate and append a transaction",
        description="Validate a JSON transaction against the stored chain and append it.",
    )
    submit_parser.add_argument("transaction", help="Transaction as a JSON object")
    submit_parser.add_argument("--user-id", help="Acting user id")
    submit_parser.add_argument("--user-name", help="Acting user name")
    submit_parser.add_argument("--employee-id", help="Acting employee id")
    submit_parser.set_defaults(func=cmd_submit)

    # state-at command
    state_parser = subparsers.add_parser(
        "state-at",
        help="Show inventory at a point in time",
        description="Replay the chain up to an ISO-8601 timestamp and print the inventory.",
    )
    state_parser.add_argument("timestamp", help="Cutoff, e.g. 2024-05-01T12:00:00Z")
    state_parser.set_defaults(func=cmd_state_at)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show effective configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the API server",
        description="Start the FastAPI server with uvicorn.",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 8000, or BIMS_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or BIMS_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
