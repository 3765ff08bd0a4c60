# Common language: environment/ops probe that surfaces versions, the active AI backend, and live sessions.
# Use this after deploys or upgrades to confirm the service is wired the way you expect.

from fastapi import APIRouter, Depends
from ..core.settings import settings
from ..services.sessions import SessionStore
from .sessions import get_session_store
import sys, importlib

router = APIRouter(tags=["health"])

def _ver(modname: str) -> str:
    try:
        m = importlib.import_module(modname)
        return getattr(m, "__version__", "unknown")
    except ImportError:
        return "not-installed"

@router.get("/healthz")
def healthz(store: SessionStore = Depends(get_session_store)):
    backend = settings.ai_backend
    return {
        "status": "ok",
        "python": sys.version.split()[0],
        "versions": {
            "fastapi": _ver("fastapi"),
            "uvicorn": _ver("uvicorn"),
            "pydantic": _ver("pydantic"),
            "pydantic_settings": _ver("pydantic_settings"),
            "httpx": _ver("httpx"),
            "PIL": _ver("PIL"),
            "openai": _ver("openai"),
        },
        "ai": {
            "backend": backend,
            "model": settings.qwen_model_id if backend == "qwen" else settings.openai_model,
            "timeout_seconds": settings.ai_timeout_seconds,
            "env_keys_present": {
                "OPENAI_API_KEY": bool(settings.openai_api_key),
            },
        },
        "sessions": {
            "live": len(store),
            "max": settings.max_sessions,
        },
    }
