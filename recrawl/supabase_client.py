from functools import lru_cache

from supabase import Client, create_client

from .config import Settings, get_settings

PLACEHOLDER_HOST = "your-project.supabase.co"


def create_catalog_client(settings: Settings) -> Client:
    """Client for the stores/products tables, authenticated with the service key."""
    url = str(settings.supabase_url)
    if PLACEHOLDER_HOST in url:
        raise RuntimeError(
            f"SUPABASE_URL is still the placeholder ({PLACEHOLDER_HOST}); "
            "set the project URL and SUPABASE_SERVICE_KEY before running a recrawl."
        )
    return create_client(url.rstrip("/"), settings.supabase_key)


@lru_cache()
def get_supabase() -> Client:
    return create_catalog_client(get_settings())
