# services/collect/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from services.collect.routes import (
    apps_router,
    auth_router,
    collections_router,
    dashboard_router,
    payments_router,
    pdf_router,
    spends_router,
    users_router,
)
from shared.config import Settings
from shared.database import init_db
from shared.middleware import add_middleware_to_app
from shared.redis_client import close_redis, init_redis

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    app.state.db = None
    app.state.redis = None

    try:
        logger.info("Starting coinCollect service initialization...")

        app.state.db = await init_db(settings)
        logger.info("Database initialized successfully")

        app.state.redis = await init_redis(settings)
        logger.info("Redis initialized successfully")

        logger.info("coinCollect service startup completed")
        yield

    except Exception as e:
        logger.error(f"coinCollect service startup failed: {e}")
        raise
    finally:
        logger.info("Shutting down coinCollect service...")
        if app.state.db:
            await app.state.db.close()
        await close_redis(app.state.redis)
        logger.info("coinCollect service shutdown completed")


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="coinCollect Admin",
        version="1.0.0",
        description="Payment collection tracking, dashboards and spend reconciliation",
        lifespan=lifespan,
    )
    app.state.settings = settings

    add_middleware_to_app(
        app,
        service_name="coincollect",
        allowed_origins=settings.allowed_origins,
    )

    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(payments_router, prefix="/coinCollect", tags=["payments"])
    app.include_router(payments_router, prefix="/payments", tags=["payments"])
    app.include_router(apps_router, prefix="/apps", tags=["apps"])
    app.include_router(users_router, prefix="/users", tags=["users"])
    app.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
    app.include_router(spends_router, prefix="/spends", tags=["spends"])
    app.include_router(pdf_router, prefix="/pdf", tags=["pdf"])
    app.include_router(collections_router, prefix="/collections", tags=["collections"])

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
