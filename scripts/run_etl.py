"""
Run the Sui object-change pipeline until interrupted.

Usage:
    python scripts/run_etl.py [--config .env.mainnet] [--print-config] all [--start-from DIGEST | --resume]
"""

import argparse
import asyncio
import os
import signal
import sys
import logging
from typing import Optional, Sequence

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from core import database
from core.config import Settings, load_settings
from core.exceptions import ConfigurationError, ETLException
from core.logging import setup_logging
from core.sui_client import SuiReadApi
from ingestion.checkpoint import MongoCheckpointStore
from ingestion.extractors.sui_extractor import SuiExtractor
from ingestion.loaders.mongo_loader import MongoLoader
from ingestion.runner import ETLRunner, MODES
from ingestion.transformers.object_enricher import ObjectEnricher

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_PIPELINE_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="sui-data-loader",
        description="Mirror Sui object changes into a document store"
    )
    parser.add_argument("--config", help="Env file with settings (default: .env)")
    parser.add_argument("--print-config", action="store_true", help="Log the effective settings on startup")
    subparsers = parser.add_subparsers(dest="command", required=True)

    help_text = {
        "extract": "Only page through object changes",
        "transform": "Extract and attach historical objects, without loading",
        "all": "Extract, transform and load into the document store",
    }
    for mode in MODES:
        sub = subparsers.add_parser(mode, help=help_text[mode])
        start = sub.add_mutually_exclusive_group()
        start.add_argument("--start-from", metavar="DIGEST", help="Transaction digest to continue after")
        start.add_argument("--resume", action="store_true", help="Continue after the stored checkpoint")
    return parser


def install_signal_handlers(stop_event: asyncio.Event):
    """Set ``stop_event`` on SIGINT / SIGTERM"""
    loop = asyncio.get_running_loop()

    def request_stop(signame: str):
        if not stop_event.is_set():
            logger.info(f"Received {signame}, shutting down after the current request...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop, sig.name)
        except NotImplementedError:
            # Platforms without loop signal support fall back to KeyboardInterrupt
            pass


async def run_pipeline(settings: Settings, args: argparse.Namespace) -> int:
    """Connect to both services, then run the requested pipeline mode"""
    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)

    mongo = database.create_client(settings)
    try:
        async with SuiReadApi(settings.SUI_RPC_URL, timeout=settings.SUI_REQUEST_TIMEOUT) as sui:
            try:
                latest = await sui.ping()
                logger.info(f"Connected to {settings.SUI_RPC_URL} (latest checkpoint {latest})")
                await database.ping(mongo)
            except Exception as e:
                logger.error(f"Startup failed, a service is unreachable: {e}")
                return EXIT_STARTUP_FAILURE

            db = database.get_database(mongo, settings)
            checkpoints = MongoCheckpointStore(database.get_checkpoint_collection(db, settings))

            extractor = SuiExtractor(
                sui,
                source_name=settings.SOURCE_NAME,
                checkpoint_store=checkpoints,
                retry_delay=settings.EXTRACT_RETRY_DELAY,
                stall_delay=settings.EXTRACT_STALL_DELAY,
                descending=settings.SUI_QUERY_DESCENDING
            )
            enricher = ObjectEnricher(
                sui,
                batch_size=settings.TRANSFORM_BATCH_SIZE,
                batch_timeout=settings.TRANSFORM_BATCH_TIMEOUT
            )
            loader = MongoLoader(
                database.get_objects_collection(db, settings),
                batch_size=settings.LOAD_BATCH_SIZE,
                batch_timeout=settings.LOAD_BATCH_TIMEOUT
            )

            start_from = args.start_from
            if args.resume:
                try:
                    start_from = await extractor.resume_point()
                except ETLException as e:
                    logger.error(f"Startup failed, cannot read checkpoint: {e}")
                    return EXIT_STARTUP_FAILURE

            runner = ETLRunner(extractor, enricher, loader)
            try:
                await runner.run(stop_event, start_from=start_from, mode=args.command)
            except ETLException as e:
                logger.error(f"ETL pipeline aborted: {e}")
                return EXIT_PIPELINE_FAILURE
            return EXIT_OK
    finally:
        await mongo.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the pipeline CLI.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
        setup_logging(settings)
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return EXIT_STARTUP_FAILURE

    if args.print_config:
        shown = settings.model_dump()
        # Credentials live before the '@' of the URI
        if "@" in shown["MONGO_URI"]:
            scheme, _, rest = shown["MONGO_URI"].partition("://")
            shown["MONGO_URI"] = f"{scheme}://***@{rest.split('@', 1)[1]}"
        logger.info(f"Effective settings: {shown}")

    try:
        return asyncio.run(run_pipeline(settings, args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
