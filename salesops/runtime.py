"""Wiring: one store, one provider registry, one engine per process."""

from functools import lru_cache

from salesops.automations.actions import ActionExecutor
from salesops.automations.engine import RuleEngine
from salesops.automations.events import EventBus, create_event_bus
from salesops.messaging.defaults import create_default_registry
from salesops.store import SqlAlchemyStore


def build_engine(store=None, providers=None, webhook_transport=None) -> RuleEngine:
    store = store or SqlAlchemyStore()
    providers = providers or create_default_registry(store)
    executor = ActionExecutor(providers, store, webhook_transport=webhook_transport)
    return RuleEngine(store, executor)


@lru_cache(maxsize=1)
def get_store() -> SqlAlchemyStore:
    return SqlAlchemyStore()


@lru_cache(maxsize=1)
def get_engine() -> RuleEngine:
    return build_engine(get_store())


@lru_cache(maxsize=1)
def get_event_bus() -> EventBus:
    return create_event_bus(get_engine())


def reset() -> None:
    """Drop cached wiring (tests, config changes)."""
    get_event_bus.cache_clear()
    get_engine.cache_clear()
    get_store.cache_clear()
