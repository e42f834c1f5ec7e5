"""Process startup and shutdown for hosts embedding the engine"""
import logging

from creator_engine.config import validate_config, LOG_LEVEL
from creator_engine.db.connection import db
from creator_engine.services.container import ServiceContainer, init_container, reset_container

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL)
    )


async def startup(llm=None) -> ServiceContainer:
    """
    Validate configuration, open the database pool and build the service container

    Args:
        llm: Optional LLMClient to inject (tests, custom clients)
    """
    logger.info("Validating configuration...")
    validate_config()

    logger.info("Initializing database connection pool...")
    await db.init_pool()

    return init_container(db, llm)


async def shutdown() -> None:
    logger.info("Closing database connection...")
    await db.close_pool()
    reset_container()
    logger.info("Shutdown complete")
