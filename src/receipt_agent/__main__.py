"""``receipt-agent`` command: load config, then serve Slack until signalled."""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from receipt_agent._version import __version__
from receipt_agent.utils.logging import configure_from_settings, configure_logging

log = structlog.get_logger()

DEFAULT_CONFIG = Path("config/config.yaml")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="receipt-agent",
        description="Reads receipt images posted to Slack and replies with a summary.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"YAML config file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Log at DEBUG level")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the config file and exit",
    )
    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log format until the config file is read (default: console)",
    )
    return parser.parse_args(argv)


async def run_agent(config_path: Path, dry_run: bool = False, debug: bool = False) -> int:
    """Load ``config_path`` and run the agent until shutdown.

    Returns the process exit code: 0 on a clean stop or a valid dry run,
    1 when the config is missing or invalid or the agent fails to start.
    """
    from receipt_agent.config.loader import load_config

    log.info("receipt_agent_launch", version=__version__, config_path=str(config_path))

    try:
        config = load_config(config_path)
        configure_from_settings(config.logging, debug=debug)
        log.info("configuration_loaded", dry_run=dry_run)

        if dry_run:
            return 0

        from receipt_agent.core.agent import create_agent

        agent = await create_agent(config)
        await agent.start()
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1

    return 0


def main() -> int:
    args = parse_args()
    configure_logging(level="DEBUG" if args.debug else "INFO", log_format=args.format)

    try:
        return asyncio.run(run_agent(args.config, args.dry_run, args.debug))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
