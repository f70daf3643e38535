"""Tests for the command line entry point."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from receipt_agent.__main__ import parse_args, run_agent

EXAMPLE_CONFIG = Path(__file__).parents[2] / "config" / "config.example.yaml"


@pytest.fixture
def example_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment for the example configuration."""
    unset = ("SLACK_APP_TOKEN", "PORT", "LLM_API_URL", "LLM_MODEL", "TENCENTCLOUD_REGION", "VAR")
    for name in unset:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-example")
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "secret")
    monkeypatch.setenv("TENCENTCLOUD_SECRET_ID", "AKIDexample")
    monkeypatch.setenv("TENCENTCLOUD_SECRET_KEY", "example-key")
    monkeypatch.setenv("LLM_API_KEY", "sk-example")


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults(self) -> None:
        """Test default arguments."""
        args = parse_args([])
        assert args.config == Path("config/config.yaml")
        assert args.debug is False
        assert args.dry_run is False
        assert args.format == "console"

    def test_flags(self) -> None:
        """Test explicit flags."""
        args = parse_args(["-c", "my.yaml", "--debug", "--dry-run", "--format", "json"])
        assert args.config == Path("my.yaml")
        assert args.debug is True
        assert args.dry_run is True
        assert args.format == "json"


class TestRunAgent:
    """Test run_agent."""

    @pytest.mark.usefixtures("example_env")
    async def test_dry_run(self) -> None:
        """Test a valid config exits 0 without starting the agent."""
        with patch("receipt_agent.core.agent.create_agent") as create:
            assert await run_agent(EXAMPLE_CONFIG, dry_run=True) == 0
        create.assert_not_called()

    async def test_missing_config(self, tmp_path: Path) -> None:
        """Test a missing config file exits 1."""
        assert await run_agent(tmp_path / "absent.yaml") == 1

    async def test_invalid_config(self, tmp_path: Path) -> None:
        """Test an invalid config file exits 1."""
        path = tmp_path / "config.yaml"
        path.write_text("slack:\n  bot_token: not-a-token\n")
        assert await run_agent(path) == 1

    @pytest.mark.usefixtures("example_env")
    async def test_starts_agent(self) -> None:
        """Test a normal run builds and starts the agent."""
        agent = AsyncMock()
        with patch(
            "receipt_agent.core.agent.create_agent", AsyncMock(return_value=agent)
        ) as create:
            assert await run_agent(EXAMPLE_CONFIG) == 0

        create.assert_awaited_once()
        agent.start.assert_awaited_once()
