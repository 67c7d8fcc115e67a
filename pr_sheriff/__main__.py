"""Entry point for PR Sheriff."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

import uvicorn
from dotenv import load_dotenv

from .config import AppConfig
from .jobs import run_blame, run_reminders
from .server import create_app
from .services import build_services

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr_sheriff",
        description="PR Sheriff - reviewer assignment and Slack reminders for GitHub",
    )
    parser.add_argument("--env-file", default=".env", help="dotenv file to load (default: .env)")
    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    subparsers.add_parser("serve", help="Run the webhook and jobs HTTP server")
    subparsers.add_parser("reminders", help="Run the daily reminders job once")
    subparsers.add_parser("blame", help="Run the stale pull request job once")
    subparsers.add_parser("init-db", help="Create database tables")
    return parser


async def _run_job(config: AppConfig, job: str) -> dict:
    services = build_services(config)
    try:
        if services.database is not None:
            await services.database.create_all()
        runner = run_reminders if job == "reminders" else run_blame
        result = await runner(services.job_context())
        return result.to_dict()
    finally:
        await services.aclose()


async def _init_db(config: AppConfig) -> None:
    services = build_services(config)
    try:
        if services.database is None:
            raise ValueError("DATABASE_URL is not set")
        await services.database.create_all()
    finally:
        await services.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    """Run a PR Sheriff command."""
    parser = create_parser()
    args = parser.parse_args(argv)
    command = args.command or "serve"

    load_dotenv(args.env_file, override=False)

    try:
        config = AppConfig.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Configuration error: {e}")
        return 1

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if command in ("reminders", "blame"):
        result = asyncio.run(_run_job(config, command))
        print(json.dumps(result, indent=2))
        return 0

    if command == "init-db":
        try:
            asyncio.run(_init_db(config))
        except ValueError as e:
            logger.error(str(e))
            return 1
        return 0

    app = create_app(build_services(config))
    logger.info(f"Starting PR Sheriff on {config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
