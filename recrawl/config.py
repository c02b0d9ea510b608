import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError


class Settings(BaseModel):
    supabase_url: HttpUrl = Field(alias="SUPABASE_URL")
    supabase_key: str = Field(alias="SUPABASE_SERVICE_KEY")
    env: str = Field(default="local", alias="APP_ENV")

    output_dir: Path = Field(default=Path("output"), alias="OUTPUT_DIR")
    concurrency: int = Field(default=10, ge=1, alias="CRAWL_CONCURRENCY")
    batch_delay_ms: int = Field(default=1000, ge=0, alias="CRAWL_BATCH_DELAY_MS")
    request_timeout: float = Field(default=60.0, gt=0, alias="REQUEST_TIMEOUT")
    max_retries: int = Field(default=5, ge=1, alias="MAX_RETRIES")
    proxy_url: Optional[str] = Field(default=None, alias="PROXY_URL")
    free_people_auth_token: Optional[str] = Field(default=None, alias="FREE_PEOPLE_AUTH_TOKEN")

    @property
    def batch_delay(self) -> float:
        return self.batch_delay_ms / 1000.0


def _load_dotenv():
    # Load from repo root if present, otherwise rely on environment variables.
    root_env = Path(__file__).resolve().parents[1] / ".env"
    if root_env.exists():
        load_dotenv(root_env)
    else:
        load_dotenv()


@lru_cache()
def get_settings() -> Settings:
    _load_dotenv()
    try:
        return Settings(**os.environ)
    except ValidationError as exc:
        missing = [e["loc"][0] for e in exc.errors() if e["type"] == "missing"]
        if missing:
            detail = f"Missing required environment variables: {', '.join(missing)}"
        else:
            detail = f"Invalid configuration: {exc}"
        raise RuntimeError(detail) from exc
