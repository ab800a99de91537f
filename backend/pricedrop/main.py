from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from pricedrop.api.admin_routes import router as admin_router
from pricedrop.core.config import settings
from pricedrop.core.logger import configure_logging, get_logger
from pricedrop.db.base import create_tables, get_engine
from pricedrop.jobs.periodic import PeriodicTrigger
from pricedrop.services.monitor import PriceMonitor, build_monitor

logger = get_logger(__name__)


def create_app(monitor: PriceMonitor | None = None, start_periodic: bool | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if monitor is None:
            create_tables(get_engine())
            app.state.monitor = build_monitor()
        else:
            app.state.monitor = monitor

        app.state.monitor.store.purge_invalid()
        app.state.trigger = PeriodicTrigger(app.state.monitor)

        enabled = settings.MONITOR_ENABLED if start_periodic is None else start_periodic
        if enabled:
            app.state.trigger.start()
        else:
            logger.info("app.periodic_disabled")

        try:
            yield
        finally:
            await app.state.trigger.stop()
            await app.state.monitor.aclose()

    app = FastAPI(
        title="Price Drop Notifier",
        description="Checks subscribed product pages and emails price drops",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(admin_router)

    @app.api_route("/health", methods=["GET", "HEAD"])
    def health_check():
        trigger = getattr(app.state, "trigger", None)
        periodic = bool(trigger and trigger.is_running)
        try:
            session_factory = app.state.monitor.store.session_factory
            with session_factory() as db:
                db.execute(text("SELECT 1"))

            return {
                "status": "healthy",
                "service": "pricedrop",
                "database": "connected",
                "periodic_checks": periodic,
            }
        except Exception as e:
            return {
                "status": "degraded",
                "service": "pricedrop",
                "database": "disconnected",
                "periodic_checks": periodic,
                "error": str(e),
            }

    return app


configure_logging()
app = create_app()
