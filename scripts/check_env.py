"""Utility for verifying that the gateway's environment configuration is intact.

The tool performs two main checks:

1. It loads ``AppSettings`` with the values of the provided ``.env`` file,
   surfacing malformed entries (and, with ``--strict``, disabled features)
   before the service starts rejecting requests.
2. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.

Example usages::

    python -m scripts.check_env record --env-file /opt/sonny/.env \
        --hash-file /opt/sonny/.env.sha256

    python -m scripts.check_env verify --env-file /opt/sonny/.env \
        --hash-file /opt/sonny/.env.sha256 --strict
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from sonny.core.config import AppSettings, read_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Build settings from ``env_file`` layered under the live environment."""
    overlay = {
        key: value
        for key, value in read_env_file(env_file).items()
        if key not in os.environ
    }
    os.environ.update(overlay)
    try:
        return AppSettings()
    finally:
        for key in overlay:
            os.environ.pop(key, None)


def _report_features(settings: AppSettings, *, strict: bool) -> int:
    missing = settings.unconfigured_features()
    for feature, keys in missing.items():
        print(f"warning: {feature} disabled (missing {', '.join(keys)})", file=sys.stderr)
    if strict and missing:
        return EXIT_VALIDATION_ERROR
    return EXIT_OK


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
        "Investigate recent changes before restarting the gateway.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate gateway settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text, needs_hash in (
        ("record", "Validate settings and store the checksum baseline.", True),
        ("verify", "Validate settings and compare against the baseline.", True),
        ("check", "Validate settings only.", False),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument("--env-file", default=".env", type=Path)
        subparser.add_argument(
            "--strict",
            action="store_true",
            help="Fail when account linking, the bearer gate or the mind service is unconfigured.",
        )
        if needs_hash:
            subparser.add_argument("--hash-file", required=True, type=Path)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    status = _report_features(settings, strict=args.strict)
    if status != EXIT_OK:
        return status

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
