import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from posledger.api.routes.archives import router as archives_router
from posledger.api.routes.auth import router as auth_router
from posledger.api.routes.billing import router as billing_router
from posledger.api.routes.change_logs import router as change_logs_router
from posledger.api.routes.estimates import router as estimates_router
from posledger.api.routes.invoices import router as invoices_router
from posledger.api.routes.orders import router as orders_router
from posledger.api.routes.products import router as products_router
from posledger.api.routes.sales import router as sales_router
from posledger.api.routes.sales import ws_router as sales_ws_router
from posledger.core.config import Settings, settings as default_settings
from posledger.core.errors import register_exception_handlers
from posledger.core.middleware import setup_middleware
from posledger.db.database import Database
from posledger.services.events import EventBroadcaster

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url, echo=settings.database_echo)
        database.open()
        if settings.auto_create_schema:
            database.create_schema()
        events = EventBroadcaster()
        events.open()
        app.state.database = database
        app.state.events = events
        logger.info("%s started", settings.app_name)
        try:
            yield
        finally:
            events.close()
            database.close()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    setup_middleware(app, settings)
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(products_router)
    app.include_router(orders_router)
    app.include_router(sales_router)
    app.include_router(sales_ws_router)
    app.include_router(invoices_router)
    app.include_router(billing_router)
    app.include_router(estimates_router)
    app.include_router(change_logs_router)
    app.include_router(archives_router)

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
