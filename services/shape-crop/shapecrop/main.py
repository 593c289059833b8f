import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .compositing.api import router as crop_router
from .config import Settings, load_settings
from .session import AppSession
from .session_api import router as session_router
from .store.api import router as shapes_router
from .store.gateway import ShapeStore


def create_app(settings: Optional[Settings] = None, store: Optional[ShapeStore] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Shape Crop")
    app.state.settings = settings
    app.state.store = store if store is not None else ShapeStore.from_settings(settings)
    app.state.session = AppSession(settings)

    app.include_router(shapes_router)
    app.include_router(crop_router)
    app.include_router(session_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "store_configured": app.state.store.configured}

    return app


def run() -> None:
    """Serve with uvicorn. `uvicorn --factory shapecrop.main:create_app` is equivalent."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
