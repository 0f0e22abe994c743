import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import get_settings
from core.database import create_engine
from models.base import Base
# Import all models to ensure they are registered
from models.events import IngestedEvent, staging_events
from models.checkpoint import CursorCheckpoint
from models.ingestion_run import IngestionRun

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = create_engine(get_settings())

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        # create_all skips tables that already exist
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_database())
