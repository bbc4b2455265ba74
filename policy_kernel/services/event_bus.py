"""
EventBus -- publish/subscribe port for policy events.

Responsibility:
    Delivers every ``PolicyEvent`` to every subscriber, in subscription
    order, on the publishing thread.

Architecture position:
    Kernel > Services.  Producers are the workflow, approval, escalation
    and monitoring services.

Invariants enforced:
    - Subscriber isolation: an exception raised by one subscriber is logged
      and discarded; later subscribers still receive the event and the
      publishing operation is unaffected.

Failure modes:
    (none propagate)
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from policy_kernel.domain.clock import Clock, SystemClock
from policy_kernel.domain.events import PolicyEvent, PolicyEventType
from policy_kernel.logging_config import get_logger
from policy_kernel.utils.ids import EVENT_PREFIX, IdGenerator

logger = get_logger("services.event_bus")

EventSubscriber = Callable[[PolicyEvent], None]


class EventBus:
    """In-process event fan-out."""

    def __init__(
        self,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._ids = id_generator or IdGenerator()
        self._subscribers: list[EventSubscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventSubscriber) -> Callable[[], None]:
        """Register a subscriber.  Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    on_event = subscribe

    def emit(
        self,
        event_type: PolicyEventType,
        *,
        account_id: str,
        actor_id: str,
        action: str,
        resource: str,
        resource_id: str,
        actor_role: str | None = None,
        details: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PolicyEvent:
        """Build a ``PolicyEvent`` stamped with the clock and publish it."""
        event = PolicyEvent(
            id=self._ids.new_id(EVENT_PREFIX),
            timestamp=self._clock.now(),
            type=event_type,
            account_id=account_id,
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=details or {},
            metadata=metadata or {},
        )
        self.publish(event)
        return event

    def publish(self, event: PolicyEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.warning(
                    "event_subscriber_failed",
                    extra={
                        "event_id": event.id,
                        "event_type": event.type.value,
                        "action": event.action,
                    },
                    exc_info=True,
                )
