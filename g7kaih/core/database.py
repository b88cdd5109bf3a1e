import logging

from supabase import Client, create_client

from g7kaih.core.config import settings

logger = logging.getLogger(__name__)

_supabase_client: Client | None = None


def get_supabase() -> Client:
    """Shared service-role client for PostgREST tables, Storage and Auth lookups."""
    global _supabase_client
    if _supabase_client is None:
        key = settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY
        if not settings.SUPABASE_URL or not key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY (or SUPABASE_KEY) must be set")
        if not settings.SUPABASE_SERVICE_KEY:
            logger.warning("SUPABASE_SERVICE_KEY not set; falling back to the anon key")
        _supabase_client = create_client(settings.SUPABASE_URL, key)
    return _supabase_client
