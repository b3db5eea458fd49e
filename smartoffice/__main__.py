"""SmartOffice Sync CLI entry point."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path.cwd() / ".env"
load_dotenv(env_file)

from smartoffice import __version__
from smartoffice.config import get_settings
from smartoffice.data.context import StoreContext
from smartoffice.data.exceptions import DocumentStoreError
from smartoffice.jobs.controls import import_controls
from smartoffice.jobs.timer import TimerInfo
from smartoffice.repositories import build_repositories
from smartoffice.repositories.controls import ControlRepository
from smartoffice.scheduler import run_all_once, run_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def _init_logfire() -> None:
    """Initialize Logfire if configured, without failing commands."""
    try:
        from smartoffice.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _apply_log_level(debug: bool = False) -> None:
    level = "DEBUG" if debug else get_settings().log_level.upper()
    logging.getLogger().setLevel(level)


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== SmartOffice Sync Configuration ===\n")
        print(f"Environment: {settings.environment}")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Cosmos DB:")
        print(f"  Endpoint: {settings.cosmos.endpoint or '(not set)'}")
        print(f"  Database: {settings.cosmos.database}")
        print(f"  Connection Timeout: {settings.cosmos.connection_timeout_seconds}s")
        print(f"  Retry Total: {settings.cosmos.retry_total}")
        print(f"  Preferred Locations: {', '.join(settings.cosmos.preferred_locations) or '(any)'}\n")

        print("Repositories:")
        print(f"  Throughput: {settings.repository.throughput_units} RU/s")
        print(f"  Bulk Import Procedure: {settings.repository.bulk_import_procedure}")
        print(f"  Page Size: {settings.repository.page_size or 'store default'}")
        print(f"  Resubmit Remainder: {settings.repository.resubmit_remainder}\n")

        print("Scheduler:")
        print(f"  Timezone: {settings.scheduler.timezone}")
        print(f"  Import Controls: {settings.scheduler.import_controls_cron}")
        print(f"  Past Due Tolerance: {settings.scheduler.past_due_tolerance_seconds}s\n")

        print("Credentials:")
        print(f"  Cosmos Key: {'✓ Set' if settings.get_cosmos_key() else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


async def _init_store(context: StoreContext) -> dict[str, object]:
    try:
        return {
            name: await repository.initialize()
            for name, repository in build_repositories(context).items()
        }
    finally:
        await context.close()


def cmd_init_store(args: argparse.Namespace) -> int:
    """Provision the database, every container and their stored procedures."""
    _init_logfire()

    try:
        settings = get_settings()
        print(f"\n=== Initializing {settings.cosmos.database} ===\n")

        results = asyncio.run(_init_store(StoreContext.from_settings(settings)))

        for name, result in results.items():
            state = "created" if result.created_anything else "already provisioned"
            print(f"✓ {name}: {state}")
        print()
        return 0

    except DocumentStoreError as e:
        logger.error(f"Store initialization failed: {e}")
        print(f"\n❌ Store initialization failed: {e}\n")
        return 1


async def _import_controls(context: StoreContext, source: str | None) -> int:
    try:
        repository = ControlRepository(context)
        await repository.initialize()
        timer = TimerInfo(scheduled_time=datetime.now(timezone.utc))
        return await import_controls(repository, timer, source)
    finally:
        await context.close()


def cmd_import_controls(args: argparse.Namespace) -> int:
    """Run the Secure Score control import once."""
    _init_logfire()

    try:
        print("\n=== Secure Score Control Import ===\n")

        context = StoreContext.from_settings(get_settings())
        imported = asyncio.run(_import_controls(context, args.source))

        print(f"✓ Imported {imported} controls\n")
        return 0

    except Exception as e:
        logger.error(f"Control import failed: {e}", exc_info=True)
        print(f"\n❌ Control import failed: {e}\n")
        return 1


async def _get_document(context: StoreContext, collection: str, id: str, partition_key: str | None):
    try:
        repository = build_repositories(context)[collection]
        return await repository.get(id, partition_key)
    finally:
        await context.close()


def cmd_get(args: argparse.Namespace) -> int:
    """Print one document by id."""
    try:
        context = StoreContext.from_settings(get_settings())
        entity = asyncio.run(_get_document(context, args.collection, args.id, args.partition_key))

        if entity is None:
            print(f"\n❌ {args.collection}/{args.id} not found\n")
            return 1

        print(entity.model_dump_json(indent=2, by_alias=True, exclude_none=True))
        return 0

    except DocumentStoreError as e:
        logger.error(f"Lookup failed: {e}")
        print(f"\n❌ Lookup failed: {e}\n")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Start the scheduler."""
    try:
        _init_logfire()
        _apply_log_level(args.debug)

        settings = get_settings()
        context = StoreContext.from_settings(settings)

        print("\n=== SmartOffice Sync ===\n")
        print(f"Version: {__version__}")
        print(f"Environment: {settings.environment}")
        print(f"Database: {settings.cosmos.database}\n")

        if args.once:
            print("Running every job once...\n")

            async def run_once() -> dict[str, object]:
                try:
                    return await run_all_once(context)
                finally:
                    await context.close()

            results = asyncio.run(run_once())
            for job_id, result in results.items():
                print(f"✓ {job_id}: {result}")
            print("\nRun complete.\n")
            return 0

        print("Starting scheduler... Press Ctrl+C to stop\n")
        asyncio.run(run_scheduler(settings, context))

        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SmartOffice Sync: scheduled reference data import into Azure Cosmos DB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"SmartOffice Sync {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_init_store = subparsers.add_parser(
        "init-store",
        help="Create the database, containers and stored procedures",
    )
    parser_init_store.set_defaults(func=cmd_init_store)

    parser_import = subparsers.add_parser(
        "import-controls",
        help="Import the Secure Score controls catalog once",
    )
    parser_import.add_argument(
        "--source",
        help="CSV file to import instead of the bundled catalog",
    )
    parser_import.set_defaults(func=cmd_import_controls)

    parser_get = subparsers.add_parser(
        "get",
        help="Print a stored document",
    )
    parser_get.add_argument(
        "--collection",
        required=True,
        choices=["controls", "customers"],
        help="Collection to read from",
    )
    parser_get.add_argument(
        "--id",
        required=True,
        help="Document id",
    )
    parser_get.add_argument(
        "--partition-key",
        help="Partition key value (enables a point read on partitioned collections)",
    )
    parser_get.set_defaults(func=cmd_get)

    parser_run = subparsers.add_parser(
        "run",
        help="Start the job scheduler",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.add_argument(
        "--once",
        action="store_true",
        help="Run every job once then exit",
    )
    parser_run.set_defaults(func=cmd_run)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
