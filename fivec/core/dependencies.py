"""
Dependency injection for FastAPI application.

Provides factory functions for creating service instances with proper
dependency injection and configuration.
"""

from functools import lru_cache

from fastapi import Depends

from fivec.config import get_settings
from fivec.services.gateways import GatewaySet, create_gateways
from fivec.services.group_health import GroupHealthService
from fivec.services.inbound_sms import InboundSMSHandler
from fivec.services.match_orchestrator import MatchOrchestrator
from fivec.services.notification_dispatcher import NotificationDispatcher
from fivec.services.thread_manager import ThreadManager


@lru_cache()
def get_store():
    """Get the durable store (in-memory unless Supabase is enabled)."""
    settings = get_settings()
    if settings.use_in_memory_store:
        from fivec.services.store import InMemoryStore
        return InMemoryStore()

    from fivec.services.database import SupabaseStore
    return SupabaseStore()


@lru_cache()
def get_gateways() -> GatewaySet:
    """Get the gateway capability set."""
    return create_gateways(get_settings())


@lru_cache()
def get_thread_manager() -> ThreadManager:
    """Get the shared thread manager so per-phone creation locks span requests."""
    return ThreadManager(get_store())


def get_notification_dispatcher(
    store=Depends(get_store),
    thread_manager: ThreadManager = Depends(get_thread_manager),
    gateways: GatewaySet = Depends(get_gateways),
) -> NotificationDispatcher:
    """
    Get notification dispatcher with all dependencies injected.

    Args:
        store: Group accessor
        thread_manager: SMS thread manager
        gateways: Gateway capability set

    Returns:
        Configured NotificationDispatcher instance
    """
    return NotificationDispatcher(store, thread_manager, gateways)


def get_match_orchestrator(
    store=Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    gateways: GatewaySet = Depends(get_gateways),
) -> MatchOrchestrator:
    return MatchOrchestrator(store, dispatcher, gateways)


def get_group_health_service(store=Depends(get_store)) -> GroupHealthService:
    return GroupHealthService(store)


def get_inbound_sms_handler(
    thread_manager: ThreadManager = Depends(get_thread_manager),
    gateways: GatewaySet = Depends(get_gateways),
) -> InboundSMSHandler:
    return InboundSMSHandler(thread_manager, gateways.sms)
