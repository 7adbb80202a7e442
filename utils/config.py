"""
Settings loaded from environment variables (and a local .env file).
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    temporal_host: str = "localhost"
    temporal_port: int = 7233
    temporal_namespace: str = "default"
    order_task_queue: str = "order-task-queue"

    # Risk scoring falls back to rules only when no key is configured
    openai_api_key: Optional[str] = None
    risk_model: str = "gpt-4-turbo"

    order_cache_ttl_seconds: int = Field(default=120, ge=0)
    log_level: str = "INFO"

    @property
    def temporal_address(self) -> str:
        return f"{self.temporal_host}:{self.temporal_port}"


def get_settings(load_env_file: bool = True) -> Settings:
    if load_env_file:
        load_dotenv()
    return Settings(
        temporal_host=os.getenv("TEMPORAL_HOST", "localhost"),
        temporal_port=int(os.getenv("TEMPORAL_PORT", "7233")),
        temporal_namespace=os.getenv("TEMPORAL_NAMESPACE", "default"),
        order_task_queue=os.getenv("ORDER_TASK_QUEUE", "order-task-queue"),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        risk_model=os.getenv("RISK_MODEL", "gpt-4-turbo"),
        order_cache_ttl_seconds=int(os.getenv("ORDER_CACHE_TTL_SECONDS", "120")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
