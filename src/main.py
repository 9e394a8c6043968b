import logging
import os
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from src.api.routes.routes import router
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _wait_for_db() -> None:
    # Postgres in docker-compose often accepts connections a few seconds after the API boots.
    attempts = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
    delay = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))

    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            if attempt == attempts:
                logger.exception(
                    "Giving up on %s database after %s attempts; check DATABASE_URL",
                    engine.dialect.name,
                    attempts,
                )
                raise
            logger.warning(
                "Database unavailable (%s/%s), next try in %.1fs",
                attempt,
                attempts,
                delay,
            )
            time.sleep(delay)
        else:
            logger.info("Connected to %s database", engine.dialect.name)
            return


def create_app() -> FastAPI:
    _configure_logging()

    application = FastAPI(title="Cinema Booking Engine")
    application.include_router(router)

    @application.on_event("startup")
    def prepare_schema() -> None:
        _wait_for_db()
        Base.metadata.create_all(bind=engine)

    return application


app = create_app()
