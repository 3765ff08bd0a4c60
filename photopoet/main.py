"""
Purpose:
- FastAPI application factory and router mounts.
- Configures logging once from settings.
- Adds CORS for local dev + future domain.
- Uvicorn serves this with `uvicorn photopoet.main:app` (or `python -m photopoet.main`).
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.settings import settings
from .api.health import router as health_router
from .api.pages import router as pages_router
from .api.sessions import router as sessions_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

def create_app() -> FastAPI:
    app = FastAPI(title="Photo Poet", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health_router)
    app.include_router(pages_router)
    app.include_router(sessions_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
