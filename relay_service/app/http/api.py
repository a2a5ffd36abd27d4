from typing import Optional

from fastapi import APIRouter, FastAPI

from relay_service.app.http.routers.conversations import router as conversations_router
from relay_service.app.http.routers.health import router as health_router
from relay_service.app.http.routers.sessions import router as sessions_router
from relay_service.protocol.service.relay_service import RelayService


def create_app(relay_service: Optional[RelayService] = None) -> FastAPI:
    """Create and configure the FastAPI application with DI"""
    from relay_service.core.config import get_section, load_settings
    from relay_service.core.factory import ServiceFactory
    from relay_service.core.logging import configure_logging

    settings = load_settings()
    configure_logging(settings)

    if relay_service is None:
        relay_service = ServiceFactory(settings).get_relay_service()

    app = FastAPI(title="relay")
    # store service on app state
    app.state.relay_svc = relay_service
    app.state.supports_update = bool(get_section(settings, "display").get("supports_update", True))

    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(conversations_router)
    v1_router.include_router(health_router)
    v1_router.include_router(sessions_router)

    app.include_router(v1_router)
    return app
