"""
Guru wali router — supervised student cards with alias-merged activity stats.
"""

from fastapi import APIRouter, Depends

from g7kaih.core.clock import Clock
from g7kaih.core.config import settings
from g7kaih.core.dependencies import get_alias_resolver, get_clock, get_report_cache
from g7kaih.core.security import require_role
from g7kaih.services.aliases import AliasResolver
from g7kaih.services.cache import Cache
from g7kaih.services.reports import build_student_cards
from g7kaih.services.store import ActivityStore, get_store
from g7kaih.utils.response import success_response

router = APIRouter(prefix="/api/guruwali", tags=["Guru Wali"])


@router.get("/students")
async def get_supervised_students(
    user: dict = Depends(require_role(["guruwali"])),
    store: ActivityStore = Depends(get_store),
    resolver: AliasResolver = Depends(get_alias_resolver),
    cache: Cache = Depends(get_report_cache),
    clock: Clock = Depends(get_clock),
):
    cache_key = f"guruwali-students:{user['user_id']}"
    cards = cache.get(cache_key)
    if cards is None:
        cards = build_student_cards(store, resolver, user["user_id"], clock())
        cache.put(cache_key, cards, settings.REPORT_CACHE_TTL)

    if not cards:
        return success_response(data=[], message="Belum ada siswa untuk guru wali ini")
    return success_response(data=cards)
