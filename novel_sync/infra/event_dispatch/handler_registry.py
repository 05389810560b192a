# =============================================================================
# File: novel_sync/infra/event_dispatch/handler_registry.py
# Description: @projection_handler decorator and the event name -> handler map
# =============================================================================

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from novel_sync.config.logging_config import get_logger

log = get_logger("novel_sync.infra.event_dispatch.registry")

HANDLER_ATTR = "_projection_metadata"


@dataclass(frozen=True)
class ProjectionHandlerInfo:
    """Metadata attached to a projector method"""
    event_name: str
    method_name: str
    description: Optional[str] = None


def projection_handler(event_name: str, *, description: Optional[str] = None):
    """
    Mark a projector method as the handler of one ledger event.

    Usage:
        class NovelProjector:
            @projection_handler("CreateNovel")
            async def on_create_novel(self, event: DecodedLedgerEvent) -> None:
                ...

    The decorator only tags the method. Handlers become live when the
    projector instance is passed to ProjectionHandlerRegistry.register_projector().
    """
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Projection handler {func.__qualname__} must be async")
        setattr(func, HANDLER_ATTR, ProjectionHandlerInfo(
            event_name=event_name,
            method_name=func.__name__,
            description=description or func.__doc__,
        ))
        return func
    return decorator


class ProjectionHandlerRegistry:
    """Routes an event name to exactly one bound projector method."""

    def __init__(self):
        self._handlers: Dict[str, Callable[[Any], Awaitable[None]]] = {}
        self._owners: Dict[str, str] = {}

    def register_projector(self, projector: Any) -> List[str]:
        """
        Register every @projection_handler method of a projector instance.

        Returns:
            The event names registered

        Raises:
            ValueError: an event name already has a handler
        """
        registered = []
        for attr_name, method in inspect.getmembers(projector, predicate=inspect.ismethod):
            info: Optional[ProjectionHandlerInfo] = getattr(method, HANDLER_ATTR, None)
            if info is None:
                continue
            owner = f"{type(projector).__name__}.{attr_name}"
            if info.event_name in self._handlers:
                raise ValueError(
                    f"Event {info.event_name} already handled by {self._owners[info.event_name]}, "
                    f"cannot register {owner}"
                )
            self._handlers[info.event_name] = method
            self._owners[info.event_name] = owner
            registered.append(info.event_name)
            log.debug(f"Registered projection handler {owner} for {info.event_name}")

        if not registered:
            log.warning(f"{type(projector).__name__} has no projection handlers")
        return registered

    def get_handler(self, event_name: str) -> Optional[Callable[[Any], Awaitable[None]]]:
        return self._handlers.get(event_name)

    def has_handler(self, event_name: str) -> bool:
        return event_name in self._handlers

    @property
    def event_names(self) -> List[str]:
        return sorted(self._handlers)

    def describe(self) -> Dict[str, str]:
        """event name -> Projector.method, for startup logging"""
        return dict(sorted(self._owners.items()))
