"""
Run the resumable event ingestion until the source is exhausted.

Exit codes:
    0 - finished, or stopped by SIGINT/SIGTERM after draining
    1 - ingestion failed (progress up to the last written page is saved)
    2 - configuration error
    3 - stream token expired; restart with a new STREAM_TOKEN to resume
"""

import asyncio
import signal
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import get_settings
from core.database import create_engine, create_session_factory
from core.exceptions import ConfigurationError, CredentialExpiredError
from core.logging import setup_logging
from ingestion.checkpoint import CheckpointStore
from ingestion.extractors.events_api import EventsAPIClient
from ingestion.loaders.postgres_loader import BatchWriter
from ingestion.pacing import select_pacing
from ingestion.run_ledger import RunLedger
from ingestion.runner import IngestionRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CREDENTIAL_EXPIRED = 3


async def run_ingestion() -> int:
    """Wire up the engine from settings and run it once"""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting event ingestion")

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    try:
        async with EventsAPIClient.from_settings(settings) as client:
            runner = IngestionRunner(
                fetcher=client,
                writer=BatchWriter(session_factory, batch_size=settings.BATCH_SIZE),
                checkpoints=CheckpointStore(session_factory),
                pacing=select_pacing(client.privileged, settings.RATE_LIMIT_PER_MINUTE),
                page_size=settings.PAGE_SIZE,
                checkpoint_interval=settings.effective_checkpoint_interval,
                expected_total=settings.EXPECTED_TOTAL_EVENTS,
                run_ledger=RunLedger(session_factory)
            )

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, runner.stop)
                except NotImplementedError:
                    # Windows: fall back to KeyboardInterrupt handling
                    pass

            result = await runner.run()
            logger.info(
                f"Ingestion {result['status']}: "
                f"{result['events_ingested']:,} events total, "
                f"{result['events_this_run']:,} this run"
            )
            return EXIT_OK

    except CredentialExpiredError:
        logger.error(
            "Stream token expired. Progress is saved; "
            "set a new STREAM_TOKEN and restart to resume"
        )
        return EXIT_CREDENTIAL_EXPIRED

    except Exception as e:
        logger.error(f"Ingestion error: {str(e)}")
        return EXIT_FAILED

    finally:
        await engine.dispose()
        logger.info("Database connections closed")


def main():
    exit_code = asyncio.run(run_ingestion())
    print("ingestion complete")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
