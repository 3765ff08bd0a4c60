"""
Purpose:
- Centralized configuration using pydantic-settings.
- Reads from environment variables and optional .env file.
- Picks the AI backend and keeps timeouts/upload limits tunable without code changes.
"""

from typing import List, Optional
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Pydantic v2 config (env file + ignore unexpected env vars)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API host/port
    host: str = Field(default="0.0.0.0", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")
    log_level: str = Field(default="info", description="Root logging level")

    # CORS
    cors_allow_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed origins for browser apps"
    )

    # ---- AI capability ----
    ai_backend: str = Field(default="openai", description='"openai" | "qwen" | "stub"')
    ai_timeout_seconds: float = Field(default=60.0, gt=0, description="Upper bound on a single AI call")

    # OpenAI-compatible chat API (OPENAI_API_KEY, OPENAI_MODEL, OPENAI_BASE_URL)
    openai_api_key: Optional[str] = None
    openai_model: str = Field(default="gpt-4o-mini")
    openai_base_url: Optional[str] = None
    openai_temperature: float = Field(default=0.7)
    openai_max_tokens: int = Field(default=1024)

    # ---- Photo intake ----
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, description="Reject uploads above this size")
    max_image_side: int = Field(default=1600, description="Downscale longest side before encoding")
    allowed_image_formats: List[str] = Field(default=["JPEG", "PNG", "GIF", "WEBP"])
    remote_fetch_timeout: float = Field(default=10.0, description="Seconds to fetch a photo URL")

    # ---- Sessions ----
    max_sessions: int = Field(default=500, description="Oldest sessions are evicted past this count")

    # ---- Qwen backend config ----
    qwen_model_id: str = Field(default="Qwen/Qwen2.5-VL-3B-Instruct")
    qwen_device: str = Field(default="auto")       # "auto" | "cuda" | "cpu"
    qwen_max_new_tokens: int = Field(default=512)
    qwen_temperature: float = Field(default=0.7)
    qwen_top_p: float = Field(default=0.9)

    # ---- Qwen memory/offload controls ----
    qwen_offload_folder: Path = Field(default=Path("./data/qwen_offload"))
    qwen_gpu_max_gb: float = Field(default=15.0)   # cap GPU usage; leave headroom
    qwen_cpu_max_gb: float = Field(default=32.0)
    qwen_attn_impl: str = Field(default="sdpa")    # "sdpa" | "flash_attention_2" | "eager"

settings = Settings()
