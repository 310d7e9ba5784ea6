"""Operator check for the bot's environment configuration.

The tool does three things:

1. Loads ``AppSettings`` from the given ``.env`` file so a missing bot token or
   Apps Script URL is caught before the webhook starts failing.
2. Reviews the optional integrations (SMTP, admin alerts, webhook secret,
   report timezone, default recipients) and prints what is enabled. With
   ``--strict`` any problem found there fails the run.
3. Records and verifies a checksum of the ``.env`` file so unexpected edits are
   detected.

Example usages::

    # Validate settings and record the expected checksum.
    python -m scripts.check_env record --env-file /opt/truckbot/.env \
        --hash-file /opt/truckbot/.env.sha256

    # Run later (e.g. from cron/systemd) to alert on drift.
    python -m scripts.check_env verify --env-file /opt/truckbot/.env \
        --hash-file /opt/truckbot/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from truckbot.core.config import AppSettings, _load_env_file
from truckbot.services.message_parser import is_valid_email

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Populate the environment from ``env_file`` and build the settings."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def review_integrations(settings: AppSettings) -> List[str]:
    """Print which optional integrations are active and return any problems."""
    problems: List[str] = []

    smtp = settings.smtp
    if smtp.enabled:
        print(f"SMTP: enabled via {smtp.server}:{smtp.port} as {smtp.from_email}")
    else:
        print("SMTP: disabled (reports are generated but not emailed)")

    invalid = [address for address in smtp.recipients if not is_valid_email(address)]
    if invalid:
        problems.append(f"DEFAULT_RECIPIENTS has invalid addresses: {', '.join(invalid)}")

    if settings.telegram.admin_chat_id:
        print(f"Admin alerts: chat {settings.telegram.admin_chat_id}")
    else:
        print("Admin alerts: disabled (alerts are only logged)")

    if not settings.telegram.webhook_secret:
        print("Webhook secret: not set (webhook accepts unauthenticated calls)")

    try:
        ZoneInfo(settings.report.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"REPORT_TIMEZONE {settings.report.timezone!r} is not a known zone")

    for problem in problems:
        print(f"WARNING: {problem}", file=sys.stderr)
    return problems


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
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
        "Investigate recent changes before restarting the bot.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate bot settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
        subparser.add_argument(
            "--strict",
            action="store_true",
            help="Fail when an optional integration is misconfigured.",
        )

    for name, help_text, hash_help in (
        ("record", "Validate settings and store the checksum baseline.", "Location to write the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline.", "Location of the recorded checksum baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_common_arguments(subparser)
        subparser.add_argument("--hash-file", required=True, type=Path, help=hash_help)

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_common_arguments(check_parser)

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
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    problems = review_integrations(settings)
    if problems and args.strict:
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
