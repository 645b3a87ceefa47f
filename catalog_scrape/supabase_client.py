from functools import lru_cache

from supabase import Client, create_client

from .config import get_settings


@lru_cache()
def get_supabase() -> Client:
    settings = get_settings()
    if settings.supabase_url is None or not settings.supabase_key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set to write to the catalog. "
            "Use --dry-run to reconcile into memory instead."
        )
    url = str(settings.supabase_url).rstrip("/")

    if "your-project.supabase.co" in url:
        raise RuntimeError(
            "SUPABASE_URL still points at the placeholder project; "
            "set the catalog project URL and service key in .env."
        )
    return create_client(url, settings.supabase_key)
