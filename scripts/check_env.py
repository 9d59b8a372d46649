"""Verify the dashboard's environment configuration before starting it.

Commands:

``check``
    Load ``AppSettings`` from the ``.env`` file and report which optional
    integrations are active. ``--probe-warehouse`` additionally opens a
    Snowflake session and runs a trivial statement.
``record`` / ``verify``
    Store, then later compare, a checksum of the ``.env`` file so unexpected
    edits are noticed before a restart.

Example usages::

    python -m scripts.check_env check --probe-warehouse
    python -m scripts.check_env record --hash-file .env.sha256
    python -m scripts.check_env verify --hash-file .env.sha256
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from app.clients import WarehouseClient, WarehouseError
from app.core.config import AppSettings, _load_env_file
from app.core.logging import configure_logging

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_WAREHOUSE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _describe(settings: AppSettings) -> None:
    snowflake = settings.snowflake
    print(
        f"Snowflake: account={snowflake.account} user={snowflake.user} "
        f"authenticator={snowflake.authenticator} table={snowflake.trial_analysis_table}"
    )
    if settings.gemini.enabled:
        print(f"Meta-summary: enabled (model {settings.gemini.model_name})")
    else:
        print("Meta-summary: disabled (GEMINI_API_KEY not set)")


async def _probe_warehouse(settings: AppSettings) -> None:
    client = WarehouseClient(settings.snowflake)
    try:
        rows = await client.execute("SELECT CURRENT_VERSION() AS VERSION")
    finally:
        await client.close()
    version = rows[0].get("VERSION") if rows else "unknown"
    print(f"Warehouse reachable (Snowflake {version}).")


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Investigate recent changes before restarting the dashboard.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate dashboard settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
        subparser.add_argument(
            "--verbose",
            action="store_true",
            help="Log at APP_LOG_LEVEL instead of WARNING.",
        )

    check_parser = subparsers.add_parser("check", help="Validate settings only.")
    add_env_file(check_parser)
    check_parser.add_argument(
        "--probe-warehouse",
        action="store_true",
        help="Open a Snowflake session and run a trivial query.",
    )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_env_file(subparser)
        subparser.add_argument(
            "--hash-file",
            required=True,
            type=Path,
            help="Location of the checksum baseline.",
        )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    configure_logging(settings.log_level if args.verbose else "WARNING", stream=sys.stderr)

    command: str = args.command
    if command == "check":
        _describe(settings)
        if args.probe_warehouse:
            try:
                asyncio.run(_probe_warehouse(settings))
            except WarehouseError as exc:
                print(f"Warehouse probe failed: {exc}", file=sys.stderr)
                return EXIT_WAREHOUSE_ERROR
        return EXIT_OK

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
