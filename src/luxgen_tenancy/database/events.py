"""
Tenant lifecycle events.

The registry and the health monitor publish a `TenantEvent` whenever a tenant connection is
created, closed, dropped, fails or is probed. Handlers subscribe per event type (or to every
event) and may be plain functions or coroutines:

```python
async def on_health(event: TenantEvent):
    metrics.gauge("tenant.healthy", event.data["healthy"], tags={"tenant": event.tenant_id})

bus.subscribe(on_health, TenantEventType.HEALTH_CHECK)
```

A failing handler is logged and never interrupts the lifecycle operation that published the event.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from luxgen_tenancy.managers.logging_manager import get_logger

logger = get_logger(prefix="[TENANT_EVENTS]")


class TenantEventType(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    DROPPED = "DROPPED"
    ERROR = "ERROR"
    HEALTH_CHECK = "HEALTH_CHECK"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


class TenantEvent(BaseModel):
    type: TenantEventType
    tenant_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


EventHandler = Callable[[TenantEvent], Union[None, Awaitable[None]]]


class TenantEventBus:
    """In-process publish/subscribe for tenant lifecycle events."""

    def __init__(self):
        self._handlers: Dict[Optional[TenantEventType], List[EventHandler]] = {}

    def subscribe(self, handler: EventHandler, event_type: Optional[TenantEventType] = None) -> None:
        """Register `handler` for `event_type`, or for every event when `event_type` is None."""
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, handler: EventHandler, event_type: Optional[TenantEventType] = None) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: TenantEvent) -> None:
        handlers = list(self._handlers.get(event.type, [])) + list(self._handlers.get(None, []))
        for handler in handlers:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Handler %r failed for %s event of tenant %s: %s", handler, event.type.value, event.tenant_id, e
                )

    async def emit(
        self,
        event_type: TenantEventType,
        tenant_id: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> TenantEvent:
        event = TenantEvent(type=event_type, tenant_id=tenant_id, data=data or {}, error=error)
        await self.publish(event)
        return event
