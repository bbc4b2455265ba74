"""Kernel infrastructure services: event delivery and per-entity locking."""

from policy_kernel.services.event_bus import EventBus, EventSubscriber
from policy_kernel.services.locks import KeyedLocks

__all__ = ["EventBus", "EventSubscriber", "KeyedLocks"]
