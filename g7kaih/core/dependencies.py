"""
Service wiring for routers.

Tests swap any of these through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from g7kaih.core import clock as clock_module
from g7kaih.core.clock import Clock
from g7kaih.core.config import settings
from g7kaih.services.aliases import AliasResolver, load_alias_groups
from g7kaih.services.cache import Cache, make_cache
from g7kaih.services.ingestion import IngestionCoordinator
from g7kaih.services.object_store import ObjectStore, get_object_store
from g7kaih.services.store import ActivityStore, get_store
from g7kaih.services.submission_gate import SubmissionGate
from g7kaih.services.validation import ValidationService


def get_clock() -> Clock:
    return clock_module.now


def get_gate(
    store: ActivityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> SubmissionGate:
    return SubmissionGate(store, clock)


def get_coordinator(
    store: ActivityStore = Depends(get_store),
    gate: SubmissionGate = Depends(get_gate),
    object_store: ObjectStore = Depends(get_object_store),
) -> IngestionCoordinator:
    return IngestionCoordinator(store, gate, object_store)


def get_validation_service(
    store: ActivityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> ValidationService:
    return ValidationService(store, clock)


@lru_cache
def get_alias_resolver() -> AliasResolver:
    return AliasResolver(load_alias_groups(settings.ALIAS_CONFIG_PATH))


@lru_cache
def get_report_cache() -> Cache:
    return make_cache(settings.REPORT_CACHE_TTL)
