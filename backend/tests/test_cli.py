"""
Command-Line Interface Tests

Tests argument parsing, exit codes and output of provisioner.cli. Settings,
.env loading and logging setup are patched so tests never depend on the
environment of the machine running them.
"""

import json
import logging
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from provisioner.cli import (
    COMPLETION_MESSAGE,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    main,
    parse_arguments,
)
from provisioner.config import Settings
from provisioner.core.database import MongoSession
from provisioner.errors import ConnectivityError
from provisioner.models.report import ProvisionReport, VerificationReport


@pytest.fixture
def cli_env(mock_settings: Settings) -> Generator[dict[str, MagicMock], None, None]:
    """Patch everything main() touches outside the provisioning run."""
    with patch("provisioner.cli.load_dotenv") as load_dotenv, patch(
        "provisioner.cli.Settings", return_value=mock_settings
    ) as settings_cls, patch("provisioner.cli.setup_logging") as setup_logging, patch(
        "provisioner.cli.MongoSession"
    ) as session_cls:
        session = session_cls.return_value.connect.return_value
        session.__enter__.return_value = session
        yield {
            "load_dotenv": load_dotenv,
            "settings_cls": settings_cls,
            "setup_logging": setup_logging,
            "session_cls": session_cls,
            "session": session,
        }


@pytest.mark.unit
class TestParseArguments:
    """Argument parsing."""

    def test_defaults(self) -> None:
        args = parse_arguments([])

        assert not args.verbose
        assert not args.json_logs
        assert args.seed_policy is None
        assert not args.skip_principal
        assert not args.skip_seed
        assert args.seed_file is None
        assert not args.verify

    def test_all_flags(self) -> None:
        args = parse_arguments(
            [
                "-v",
                "--json-logs",
                "--seed-policy",
                "skip",
                "--skip-principal",
                "--skip-seed",
                "--seed-file",
                "seed.json",
                "--verify",
            ]
        )

        assert args.verbose
        assert args.json_logs
        assert args.seed_policy == "skip"
        assert args.skip_principal
        assert args.skip_seed
        assert args.seed_file == Path("seed.json")
        assert args.verify

    def test_unknown_seed_policy_rejected(self) -> None:
        with pytest.raises(SystemExit):
            parse_arguments(["--seed-policy", "overwrite"])


@pytest.mark.unit
class TestMainExitCodes:
    """Exit codes and output of main()."""

    def test_success_prints_completion_message(
        self, cli_env: dict[str, MagicMock], capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch(
            "provisioner.cli.provision",
            return_value=ProvisionReport(database="gin_admin", seed_policy="upsert"),
        ) as provision:
            exit_code = main([])

        assert exit_code == EXIT_OK
        assert COMPLETION_MESSAGE in capsys.readouterr().out
        _, kwargs = provision.call_args
        assert kwargs == {"seed_policy": "upsert", "skip_principal": False, "skip_seed": False}

    def test_flags_forwarded(self, cli_env: dict[str, MagicMock]) -> None:
        with patch(
            "provisioner.cli.provision",
            return_value=ProvisionReport(database="gin_admin", seed_policy="skip"),
        ) as provision:
            main(["--seed-policy", "skip", "--skip-principal", "--skip-seed", "--verbose"])

        _, kwargs = provision.call_args
        assert kwargs == {"seed_policy": "skip", "skip_principal": True, "skip_seed": True}
        _, logging_kwargs = cli_env["setup_logging"].call_args
        assert logging_kwargs["log_level"] == "DEBUG"

    def test_connect_failure(
        self, cli_env: dict[str, MagicMock], capsys: pytest.CaptureFixture[str]
    ) -> None:
        cli_env["session_cls"].return_value.connect.side_effect = ConnectivityError(
            "No servers found", step="connect"
        )

        with patch("provisioner.cli.provision") as provision:
            exit_code = main([])

        assert exit_code == EXIT_FAILURE
        provision.assert_not_called()
        captured = capsys.readouterr()
        assert "MongoDB initialization failed: [connect] No servers found" in captured.err
        assert COMPLETION_MESSAGE not in captured.out

    def test_verification_problem_fails(
        self, cli_env: dict[str, MagicMock], capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch(
            "provisioner.cli.provision",
            return_value=ProvisionReport(database="gin_admin", seed_policy="upsert"),
        ), patch(
            "provisioner.cli.verify_provisioning",
            return_value=VerificationReport(
                database="gin_admin", problems=["Seed role 'user' is missing"]
            ),
        ):
            exit_code = main(["--verify"])

        assert exit_code == EXIT_FAILURE
        captured = capsys.readouterr()
        assert COMPLETION_MESSAGE not in captured.out
        assert "Verification failed with 1 problem(s)" in captured.err

    def test_summary_logs_duration(
        self, cli_env: dict[str, MagicMock], caplog: pytest.LogCaptureFixture
    ) -> None:
        report = ProvisionReport(database="gin_admin", seed_policy="upsert")
        report.finish()

        with patch("provisioner.cli.provision", return_value=report), caplog.at_level(
            logging.INFO, logger="provisioner.cli"
        ):
            assert main([]) == EXIT_OK

        summary = [r.getMessage() for r in caplog.records if "Operations summary" in r.getMessage()]
        assert len(summary) == 1
        assert "database=gin_admin" in summary[0]
        assert "duration=" in summary[0]

    def test_keyboard_interrupt(self, cli_env: dict[str, MagicMock]) -> None:
        with patch("provisioner.cli.provision", side_effect=KeyboardInterrupt):
            assert main([]) == EXIT_INTERRUPTED

    def test_invalid_configuration(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("provisioner.cli.load_dotenv"), patch(
            "provisioner.cli.Settings", side_effect=ValueError("Invalid seed_policy 'x'")
        ):
            exit_code = main([])

        assert exit_code == EXIT_FAILURE
        assert "Invalid configuration" in capsys.readouterr().err

    def test_invalid_seed_file(
        self, cli_env: dict[str, MagicMock], tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        seed_file = tmp_path / "seed.json"
        seed_file.write_text("{not json", encoding="utf-8")

        with patch("provisioner.cli.provision") as provision:
            exit_code = main(["--seed-file", str(seed_file)])

        assert exit_code == EXIT_FAILURE
        provision.assert_not_called()
        assert "[load_spec]" in capsys.readouterr().err

    def test_seed_file_used(self, cli_env: dict[str, MagicMock], tmp_path: Path) -> None:
        seed_file = tmp_path / "seed.json"
        seed_file.write_text(
            json.dumps(
                {
                    "database": "custom",
                    "principal": {"name": "svc", "secret": "pw", "grant_db": "custom"},
                    "collections": [{"name": "events"}],
                }
            ),
            encoding="utf-8",
        )

        with patch(
            "provisioner.cli.provision",
            return_value=ProvisionReport(database="custom", seed_policy="upsert"),
        ) as provision:
            assert main(["--seed-file", str(seed_file)]) == EXIT_OK

        spec = provision.call_args.args[1]
        assert spec.database == "custom"
        assert spec.collection_names == ["events"]


@pytest.mark.integration
class TestMainEndToEnd:
    """main() against in-memory MongoDB."""

    def test_provision_and_verify(
        self,
        cli_env: dict[str, MagicMock],
        session: MongoSession,
        target_db,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        cli_env["session_cls"].return_value.connect.return_value = session
        # Keep the in-memory client open across both runs
        session.close = MagicMock()

        assert main(["--verify"]) == EXIT_OK
        assert main(["--verify"]) == EXIT_OK

        assert COMPLETION_MESSAGE in capsys.readouterr().out
        assert sorted(target_db.list_collection_names()) == [
            "audit_logs",
            "file_storage",
            "permissions",
            "roles",
            "users",
        ]
        assert target_db["roles"].count_documents({}) == 2
