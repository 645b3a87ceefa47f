import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36"
)


class Settings(BaseModel):
    supabase_url: Optional[HttpUrl] = Field(default=None, alias="SUPABASE_URL")
    supabase_key: Optional[str] = Field(default=None, alias="SUPABASE_SERVICE_KEY")
    catalog_table: str = Field(default="products", alias="CATALOG_TABLE")
    headless: bool = Field(default=True, alias="SCRAPER_HEADLESS")
    user_agent: str = Field(default=DEFAULT_UA, alias="SCRAPER_USER_AGENT")
    export_dir: Optional[str] = Field(default=None, alias="SCRAPER_EXPORT_DIR")
    respect_robots: bool = Field(default=False, alias="SCRAPER_RESPECT_ROBOTS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


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
        bad = [str(e["loc"][0]) for e in exc.errors()]
        detail = f"Invalid scraper environment variables: {', '.join(bad)}"
        raise RuntimeError(detail) from exc
