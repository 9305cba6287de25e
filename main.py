from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.infrastructure.database import engine, initialize_database
from app.infrastructure.logging_config import configure_logging
from app.infrastructure.notifications import NotificationConnectionManager
from app.interfaces.api.routes import register_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the database and heartbeat monitor, then release them on shutdown."""

    settings = get_settings()
    initialize_database()
    manager: NotificationConnectionManager = app.state.notification_manager
    async with anyio.create_task_group() as task_group:
        task_group.start_soon(
            manager.run_heartbeat_monitor, settings.heartbeat_check_interval_seconds
        )
        yield
        await manager.close_all()
        task_group.cancel_scope.cancel()
    engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Learning notifications", lifespan=lifespan)
    app.state.notification_manager = NotificationConnectionManager.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
