import logging

from fastapi import FastAPI

from .config import BOOKING_DB, LOG_LEVEL
from .db import get_engine, get_session
from .errors import BookingError
from .publisher import RabbitDispatcher
from .routes import booking_error_handler, router

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")


def create_app(session_factory=None, dispatcher=None) -> FastAPI:
    app = FastAPI(title="Booking Service")
    app.include_router(router)
    app.add_exception_handler(BookingError, booking_error_handler)

    app.state.engine = None
    app.state.session_factory = session_factory
    app.state.dispatcher = dispatcher if dispatcher is not None else RabbitDispatcher()

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": "booking-service",
            "events_enabled": getattr(app.state.dispatcher, "enabled", False),
        }

    @app.on_event("startup")
    async def startup():
        configure_logging()

        if app.state.session_factory is None:
            if not BOOKING_DB:
                raise RuntimeError("BOOKING_DB environment variable is not set")
            app.state.engine = get_engine(BOOKING_DB)
            app.state.session_factory = get_session(app.state.engine)

        # Never crash service if RabbitMQ is temporarily unavailable
        start = getattr(app.state.dispatcher, "start", None)
        if start:
            try:
                await start()
            except Exception:
                logger.warning("RabbitMQ connect failed at startup; continuing without events")

    @app.on_event("shutdown")
    async def shutdown():
        close = getattr(app.state.dispatcher, "close", None)
        if close:
            await close()
        if app.state.engine is not None:
            await app.state.engine.dispose()

    return app


app = create_app()
