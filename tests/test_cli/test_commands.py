"""Tests for CLI commands — assistant collaborators stubbed, CliRunner used throughout."""

from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner, Result

from conftest import FakeIdentityProvider, StubGenerationService

from brandreply.assistant import ReplyAssistant, build_assistant
from brandreply.config import AppConfig
from brandreply.errors import IdentityError, ServiceError
from brandreply.identity.provider import Identity
from brandreply.profile.store import InMemoryProfileStore
from brandreply.profile.types import DEFAULT_SETTINGS, Settings, settings_path

APP_ID = "cli_app"


class Harness:
    """Holds the collaborators every invocation's assistant is built from."""

    def __init__(self) -> None:
        self.store = InMemoryProfileStore()
        self.provider = FakeIdentityProvider(Identity(uid="cli_user"))
        self.service = StubGenerationService("Dear Dana, thanks for your interest.")

    def build(self, config: AppConfig) -> ReplyAssistant:
        return build_assistant(
            AppConfig(app_id=APP_ID),
            identity_provider=self.provider,
            store=self.store,
            service=self.service,
        )

    def invoke(self, *args: str, input: str | None = None) -> Result:
        from brandreply.cli.main import cli

        runner = CliRunner()
        with patch("brandreply.cli.commands.build_assistant", side_effect=self.build):
            return runner.invoke(cli, list(args), input=input, catch_exceptions=False)


@pytest.fixture
def harness() -> Harness:
    return Harness()


# ── whoami ───────────────────────────────────────────────────────────────────────


class TestWhoamiCommand:
    def test_prints_uid(self, harness: Harness) -> None:
        result = harness.invoke("whoami")
        assert result.exit_code == 0
        assert "cli_user" in result.output

    def test_sign_in_failure_exits_nonzero(self, harness: Harness) -> None:
        harness.provider.error = IdentityError("unreachable")
        result = harness.invoke("whoami")
        assert result.exit_code == 1
        assert "Failed to initialize" in result.output

    def test_fallback_warning_shown(self, harness: Harness) -> None:
        harness.provider.identity = Identity(uid="anon_1", via_fallback=True)
        result = harness.invoke("whoami")
        assert result.exit_code == 0
        assert "anonymous" in result.output


# ── settings ─────────────────────────────────────────────────────────────────────


class TestSettingsCommands:
    def test_show_defaults_when_nothing_stored(self, harness: Harness) -> None:
        result = harness.invoke("settings", "show")
        assert result.exit_code == 0
        assert DEFAULT_SETTINGS.sender_name in result.output
        assert DEFAULT_SETTINGS.sender_email in result.output

    def test_show_does_not_write_defaults(self, harness: Harness) -> None:
        harness.invoke("settings", "show")
        assert harness.store.get(settings_path(APP_ID, "cli_user")) is None

    def test_save_then_show(self, harness: Harness) -> None:
        saved = harness.invoke(
            "settings", "save",
            "--mission", "We certify organic cotton.",
            "--sender-name", "Cotton Co",
            "--sender-email", "hello@cotton.example",
        )
        assert saved.exit_code == 0
        assert "saved successfully" in saved.output

        shown = harness.invoke("settings", "show")
        assert "Cotton Co" in shown.output
        assert "hello@cotton.example" in shown.output

    def test_save_keeps_unspecified_fields(self, harness: Harness) -> None:
        harness.store.set(
            settings_path(APP_ID, "cli_user"),
            Settings(mission="Old mission", sender_name="Old Name", sender_email="old@x.com").to_document(),
        )
        result = harness.invoke("settings", "save", "--sender-name", "New Name")

        assert result.exit_code == 0
        assert harness.store.get(settings_path(APP_ID, "cli_user")) == {
            "mission": "Old mission",
            "senderName": "New Name",
            "senderEmail": "old@x.com",
        }

    def test_save_failure_exits_nonzero(self, harness: Harness) -> None:
        def refuse(path: str, data: dict) -> None:
            raise OSError("read-only filesystem")

        harness.store.set = refuse  # type: ignore[method-assign]
        result = harness.invoke("settings", "save", "--mission", "x")
        assert result.exit_code == 1
        assert "Failed to save company details" in result.output


# ── generate ─────────────────────────────────────────────────────────────────────


class TestGenerateCommand:
    def test_prints_reply_from_stdin(self, harness: Harness, sample_inbound_email: str) -> None:
        result = harness.invoke("generate", input=sample_inbound_email)
        assert result.exit_code == 0
        assert "Dear Dana, thanks for your interest." in result.output
        assert sample_inbound_email in harness.service.prompts[0]

    def test_reads_email_file(self, harness: Harness, tmp_path: Path) -> None:
        email_file = tmp_path / "inbound.txt"
        email_file.write_text("Do you ship to Canada?")
        result = harness.invoke("generate", str(email_file))
        assert result.exit_code == 0
        assert "Do you ship to Canada?" in harness.service.prompts[0]

    def test_empty_email_fails_without_generation(self, harness: Harness) -> None:
        result = harness.invoke("generate", input="")
        assert result.exit_code == 1
        assert "Please enter the incoming email text" in result.output
        assert harness.service.prompts == []

    def test_service_error_shows_status(self, harness: Harness) -> None:
        harness.service = StubGenerationService(ServiceError(500))
        result = harness.invoke("generate", input="Hello?")
        assert result.exit_code == 1
        assert "500" in result.output

    def test_sign_in_failure_skips_generation(self, harness: Harness) -> None:
        harness.provider.error = IdentityError("unreachable")
        result = harness.invoke("generate", input="Hello?")
        assert result.exit_code == 1
        assert harness.service.prompts == []
