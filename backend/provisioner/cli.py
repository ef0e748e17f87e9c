"""
Command-line entry point for the gin-admin MongoDB provisioner.

Usage:
    gin-provision [options]
    python scripts/init_db.py [options]

Options:
    --verbose, -v       Display detailed operation logs
    --json-logs         Emit JSON log lines (for container log collectors)
    --seed-policy       How seed roles are written on re-runs: upsert (default) or skip
    --skip-principal    Do not create the application principal
    --skip-seed         Do not write seed role documents
    --seed-file PATH    Load the seed specification from a JSON file
    --verify            Verify collections, indexes and seed roles after provisioning

Environment Variables:
    MONGODB_URI                 Full connection URI (wins over host/port)
    MONGODB_HOST, MONGODB_PORT  Endpoint (default: localhost:27017)
    MONGODB_USERNAME            Administrative user (optional)
    MONGODB_PASSWORD            Administrative password (optional)
    MONGODB_DB_NAME             Target database (default: gin_admin)
    APP_DB_USER                 Application principal (default: gin_admin)
    APP_DB_PASSWORD             Application principal secret
    SEED_POLICY                 upsert or skip (default: upsert)
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from provisioner.config import SEED_POLICIES, Settings
from provisioner.core.database import MongoSession
from provisioner.errors import ProvisionError, ValidationError
from provisioner.models.seed import SeedSpec, gin_admin_seed_spec, load_seed_spec
from provisioner.services.provisioner import provision
from provisioner.services.verification import verify_provisioning
from provisioner.utils.logger import setup_logging


logger = logging.getLogger(__name__)

COMPLETION_MESSAGE = "MongoDB initialization completed successfully"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="gin-provision",
        description="Provision the gin_admin MongoDB database (principal, collections, "
        "indexes, seed roles). Safe to re-run.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gin-provision                       # Provision with settings from env/.env
  gin-provision --verbose --verify    # Detailed logs plus post-run verification
  gin-provision --skip-principal      # Principal is managed elsewhere
  gin-provision --seed-policy skip    # Never touch existing role documents
        """,
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Display detailed operation logs"
    )

    parser.add_argument("--json-logs", action="store_true", help="Emit JSON formatted log lines")

    parser.add_argument(
        "--seed-policy",
        choices=SEED_POLICIES,
        default=None,
        help="How seed role documents are written on re-runs (default: SEED_POLICY or upsert)",
    )

    parser.add_argument(
        "--skip-principal", action="store_true", help="Do not create the application principal"
    )

    parser.add_argument("--skip-seed", action="store_true", help="Do not write seed role documents")

    parser.add_argument(
        "--seed-file",
        type=Path,
        default=None,
        help="Load the seed specification from a JSON file instead of the built-in one",
    )

    parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify collections, indexes and seed roles after provisioning",
    )

    return parser.parse_args(argv)


def read_seed_file(path: Path) -> SeedSpec:
    """
    Load a seed specification from a JSON file.

    Raises:
        ValidationError: If the file cannot be read or does not hold a valid spec.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read seed file {path}: {e}", step="load_spec", cause=e) from e
    return load_seed_spec(data)


def run(args: argparse.Namespace, settings: Settings) -> int:
    """
    Provision (and optionally verify) using already parsed arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    spec = read_seed_file(args.seed_file) if args.seed_file else gin_admin_seed_spec(settings)
    seed_policy = args.seed_policy or settings.seed_policy

    with MongoSession(settings).connect() as session:
        report = provision(
            session,
            spec,
            seed_policy=seed_policy,
            skip_principal=args.skip_principal,
            skip_seed=args.skip_seed,
        )
        logger.info(
            f"Operations summary: {report.summary()} "
            f"duration={report.duration_seconds or 0.0:.2f}s"
        )

        if args.verify:
            verification = verify_provisioning(session, spec)
            if not verification.ok:
                print(
                    f"\nVerification failed with {len(verification.problems)} problem(s)",
                    file=sys.stderr,
                )
                return EXIT_FAILURE

    print(COMPLETION_MESSAGE)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the provisioning command.

    Returns:
        Exit code (0 for success, 1 for failure, 130 when interrupted).
    """
    args = parse_arguments(argv)

    load_dotenv()
    try:
        settings = Settings()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(
        log_level="DEBUG" if args.verbose else settings.log_level,
        json_logs=args.json_logs or settings.json_logs,
    )

    try:
        return run(args, settings)

    except KeyboardInterrupt:
        print("\n\nInitialization interrupted by user.", file=sys.stderr)
        return EXIT_INTERRUPTED

    except ProvisionError as e:
        print(f"MongoDB initialization failed: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
