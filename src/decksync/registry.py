"""
Key identity registry.

Maps visible button instances (contexts) to the logical controls they are
bound to and back. One control can be shown by several contexts at once,
e.g. the same mapped button on two connected decks.
"""

from collections import defaultdict
from typing import Iterator, Optional

from decksync.controls import ButtonContext, ButtonKind, LogicalControl
from decksync.logging_config import get_logger

logger = get_logger(__name__)


class ContextRegistry:
    """
    Bidirectional index of ButtonContexts.

    Lookups by context id, by bound control and by device. Registration order
    is preserved so resyncs and commits visit contexts in appearance order.
    """

    def __init__(self):
        self._contexts: dict[str, ButtonContext] = {}
        self._by_control: defaultdict[LogicalControl, dict[str, None]] = defaultdict(dict)

    def add(self, context: ButtonContext) -> Optional[ButtonContext]:
        """
        Register a context, replacing any previous registration with the same id.

        Args:
            context: Context to register

        Returns:
            The replaced context, if any
        """
        previous = self.remove(context.context_id)
        if previous is not None:
            logger.debug(f"Context {context.context_id} re-registered (was bound to {previous.control})")

        self._contexts[context.context_id] = context
        if context.control is not None:
            self._by_control[context.control][context.context_id] = None
        return previous

    def remove(self, context_id: str) -> Optional[ButtonContext]:
        """
        Unregister a context.

        Returns:
            The removed context, or None if it was not registered
        """
        context = self._contexts.pop(context_id, None)
        if context is None:
            return None

        if context.control is not None:
            bound = self._by_control.get(context.control)
            if bound is not None:
                bound.pop(context_id, None)
                if not bound:
                    del self._by_control[context.control]
        return context

    def remove_device(self, device_id: str) -> list[ButtonContext]:
        """
        Unregister every context of a device.

        Returns:
            The removed contexts
        """
        doomed = [ctx.context_id for ctx in self._contexts.values() if ctx.device_id == device_id]
        return [ctx for ctx in (self.remove(context_id) for context_id in doomed) if ctx is not None]

    def get(self, context_id: str) -> Optional[ButtonContext]:
        return self._contexts.get(context_id)

    def contexts_for_control(self, control: LogicalControl) -> list[ButtonContext]:
        """All contexts currently bound to control."""
        bound = self._by_control.get(control)
        if not bound:
            return []
        return [self._contexts[context_id] for context_id in bound]

    def contexts_for_device(self, device_id: str, kind: Optional[ButtonKind] = None) -> list[ButtonContext]:
        """
        All contexts on a device, optionally filtered by kind.

        Args:
            device_id: Device identifier
            kind: Only return contexts of this kind (None for all)
        """
        return [
            ctx
            for ctx in self._contexts.values()
            if ctx.device_id == device_id and (kind is None or ctx.kind == kind)
        ]

    def is_bound(self, control: LogicalControl) -> bool:
        """Check whether at least one context is bound to control."""
        return control in self._by_control

    def controls(self) -> list[LogicalControl]:
        """Every control with at least one bound context."""
        return list(self._by_control.keys())

    def __contains__(self, context_id: object) -> bool:
        return context_id in self._contexts

    def __iter__(self) -> Iterator[ButtonContext]:
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)
