"""
Reassembly of streamed tool-call fragments.

Streaming chat completions deliver tool calls as index-addressed pieces:
the first piece for an index usually carries the call id and function name,
later pieces carry slices of the JSON arguments string. The accumulator keys
in-progress calls by index so sparse or out-of-order indices are tolerated.
"""

import logging
from typing import Any, Dict, List, Optional

from .conversation import ToolCallRef

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a dict fragment or an SDK object fragment."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class _PendingCall:
    """In-progress builder for one index; ``arguments_text`` only grows."""

    __slots__ = ("id", "index", "function_name", "arguments_text")

    def __init__(self, index: int, call_id: str = "", name: str = "", arguments: str = ""):
        self.id = call_id
        self.index = index
        self.function_name = name
        self.arguments_text = arguments

    def build(self) -> ToolCallRef:
        return ToolCallRef(
            id=self.id or f"call_{self.index}",
            index=self.index,
            function_name=self.function_name,
            arguments_text=self.arguments_text,
        )


class ToolCallAccumulator:
    """Merges partial tool-call fragments into complete ToolCallRefs."""

    def __init__(self):
        self._slots: Dict[int, _PendingCall] = {}

    def add(self, fragment: Any) -> Optional[_PendingCall]:
        """Merge one fragment.

        Args:
            fragment: ``{index, id?, function?: {name?, arguments?}}`` as a dict
                or an SDK delta object

        Returns:
            The in-progress slot the fragment was merged into, or None if it had no index
        """
        index = _field(fragment, "index")
        if index is None:
            logger.debug(f"Ignoring tool call fragment without index: {fragment!r}")
            return None

        call_id = _field(fragment, "id") or ""
        function = _field(fragment, "function")
        name = _field(function, "name") or ""
        arguments = _field(function, "arguments") or ""

        slot = self._slots.get(index)
        if slot is None:
            slot = _PendingCall(index, call_id, name, arguments)
            self._slots[index] = slot
            return slot

        if call_id and not slot.id:
            slot.id = call_id
        if name and not slot.function_name:
            slot.function_name = name
        slot.arguments_text += arguments
        return slot

    def add_all(self, fragments) -> None:
        for fragment in fragments or ():
            self.add(fragment)

    def has_calls(self) -> bool:
        return bool(self._slots)

    def finalize(self) -> List[ToolCallRef]:
        """Return the accumulated calls in first-seen index order."""
        return [slot.build() for slot in self._slots.values()]

    def __len__(self) -> int:
        return len(self._slots)
