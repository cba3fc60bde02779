"""CertPilot command-line entry point.

Usage::

    certpilot -c config.yaml
    certpilot -c config.yaml run
    certpilot -c config.yaml --validate-only
    certpilot -c config.yaml zone www.example.com --challenge tencent
    python -m certpilot -c config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certpilot.config import CertPilotConfig

log = logging.getLogger(__name__)


def _get_version() -> str:
    from certpilot import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certpilot",
        description="CertPilot: Let's Encrypt certificates via cloud DNS-01 challenges",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run
    subparsers.add_parser("run", help="Issue or renew every configured certificate")

    # zone
    zone_parser = subparsers.add_parser(
        "zone",
        help="Show which provider zone a domain resolves to",
    )
    zone_parser.add_argument("domain", help="Domain name, e.g. www.example.com")
    zone_parser.add_argument(
        "--challenge",
        required=True,
        metavar="NAME",
        help="Name of the challenge preset whose credential to use",
    )

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"Error: {message}", file=sys.stderr)  # noqa: T201


def _print_settings_summary(config: CertPilotConfig) -> None:
    settings = config.settings
    print(f"Configuration OK: {config.data.get('_source', '?')}")  # noqa: T201
    print(f"  directory:    {'staging' if settings.staging else 'production'}")  # noqa: T201
    print(f"  presets:      {', '.join(sorted(settings.challenges)) or '-'}")  # noqa: T201
    print(f"  certificates: {len(settings.certificates)}")  # noqa: T201
    for cert in settings.certificates:
        print(f"    - {', '.join(cert.csr.domain_names)} via {cert.challenge.provider}")  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs the command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from certpilot.config import CertPilotConfig, ConfigValidationError  # noqa: PLC0415

        config = CertPilotConfig(
            config_file=str(config_path),
            schema_file="bundled",
        )
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:  # noqa: BLE001
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from certpilot.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("certpilot").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    if args.command == "zone":
        sys.exit(_run_zone(config, args))
    sys.exit(_run_issuance(config, args))


def _run_issuance(config: CertPilotConfig, args: argparse.Namespace) -> int:
    from certpilot.acme.acmeow_issuer import AcmeowIssuer  # noqa: PLC0415
    from certpilot.acme.base import IssuanceError  # noqa: PLC0415
    from certpilot.task import TaskOutcome, run_task  # noqa: PLC0415

    settings = config.settings
    issuer = AcmeowIssuer(
        settings.account.storage_path,
        staging=settings.staging,
        propagation_delay=settings.dns01.propagation_delay_seconds,
    )
    try:
        results = asyncio.run(run_task(settings, issuer))
    except IssuanceError as exc:
        if args.debug:
            raise
        _print_error(exc.detail)
        return 1

    for result in results:
        line = f"{result.outcome.value:<8} {result.common_name}"
        if result.path is not None:
            line += f"  {result.path}"
        if result.error:
            line += f"  ({result.error})"
        print(line)  # noqa: T201
    return 1 if any(r.outcome is TaskOutcome.FAILED for r in results) else 0


def _run_zone(config: CertPilotConfig, args: argparse.Namespace) -> int:
    from certpilot.dns01.orchestrator import ChallengeOrchestrator  # noqa: PLC0415
    from certpilot.errors import DnsChallengeError  # noqa: PLC0415
    from certpilot.providers.registry import load_provider  # noqa: PLC0415

    settings = config.settings
    preset = settings.challenges.get(args.challenge)
    if preset is None:
        _print_error(f"unknown challenge preset '{args.challenge}'")
        return 1

    async def _resolve() -> None:
        provider = load_provider(
            preset.credential(),
            timeout=settings.dns01.request_timeout_seconds,
        )
        orchestrator = ChallengeOrchestrator(provider)
        try:
            match = await orchestrator.resolve_zone(args.domain)
        finally:
            await orchestrator.aclose()
        print(f"zone:      {match.zone_name}")  # noqa: T201
        print(f"subdomain: {match.relative_subdomain or '@'}")  # noqa: T201
        print(f"record:    {match.record_fqdn} TXT")  # noqa: T201

    try:
        asyncio.run(_resolve())
    except DnsChallengeError as exc:
        if args.debug:
            raise
        _print_error(exc.detail)
        return 1
    return 0
