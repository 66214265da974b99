"""
GuestTool - base class for chatbot tools.

A GuestTool wraps one guest-scoped operation. ``execute`` resolves the
target guest against the GuestContextHash, short-circuits mutations to
``simulate`` in test mode, serves read-only results from the per-event
cache, and clears that cache after every mutation.

Subclasses set ``name``, ``description``, ``input_schema`` and
``is_read_only`` and implement ``_execute`` and ``simulate``.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ...guests.models import GuestContextEntry, GuestContextHash

logger = logging.getLogger(__name__)


class GuestResolutionError(ValueError):
    """The requested guest is not the event's primary guest nor one of its companions."""


class GuestTool(ABC):
    name: str = ""
    description: str = ""
    input_schema: Dict[str, Any] = {}
    is_read_only: bool = False

    def __init__(self, context: GuestContextHash, stores, test_mode: bool = False):
        self.context = context
        self.stores = stores
        self.test_mode = test_mode

    # ------------------------------------------------------------------
    # guest resolution
    # ------------------------------------------------------------------

    def _entry(self, event_id: Optional[str]) -> GuestContextEntry:
        entry = self.context.get(event_id) if event_id else None
        if entry is None:
            raise GuestResolutionError(
                f"Guest context not found for event {event_id}. "
                "Be sure to use the correct Event ID, not the guest ID."
            )
        return entry

    def get_guest_metadata(self, event_id: Optional[str], tool_input: Dict[str, Any]) -> Tuple[str, str]:
        """Resolve ``(guest_id, guest_name)`` for a call.

        Without a ``guestId`` in the input the event's primary guest is used.
        """
        entry = self._entry(event_id)
        requested = tool_input.get("guestId")
        guest = entry.find_guest(requested)
        if guest is None:
            raise GuestResolutionError(
                f"Guest context not found for event {event_id} for this guest"
            )
        if guest.id != entry.guest.id:
            logger.info(
                f"[GuestTool] Using guest ({guest.name}) {guest.id} from group "
                f"instead of main guest {entry.guest.id}"
            )
        return guest.id, guest.name

    def event_name(self, event_id: str) -> str:
        return self._entry(event_id).event.name

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------

    async def execute(self, event_id: Optional[str], tool_input: Dict[str, Any]) -> Any:
        guest_id, _ = self.get_guest_metadata(event_id, tool_input)

        if not self.is_read_only and self.test_mode:
            logger.info(
                f"[GuestTool] Test mode: simulating '{self.name}' for event {event_id}, "
                f"guest {guest_id}, input {json.dumps(tool_input, default=str)}"
            )
            return await self.simulate(event_id, guest_id, tool_input)

        cache = getattr(self.stores, "cache", None)
        if self.is_read_only and cache is not None:
            cached = await cache.get(event_id, self.name, guest_id)
            if cached is not None:
                return cached

        result = await self._execute(event_id, guest_id, tool_input)

        if cache is not None:
            if self.is_read_only:
                await cache.set(event_id, self.name, guest_id, result)
            else:
                await cache.invalidate(event_id)
        return result

    @abstractmethod
    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> Any:
        """Run against storage."""

    @abstractmethod
    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> Any:
        """Return what ``_execute`` would, without writing anything."""

    # ------------------------------------------------------------------
    # manifest
    # ------------------------------------------------------------------

    def to_tool(self, cache: bool = False) -> Dict[str, Any]:
        tool: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
        if cache:
            tool["cache_control"] = {"type": "ephemeral"}
        return tool


def event_id_property(description: str = "The ID of the event") -> Dict[str, str]:
    return {"type": "string", "description": description}


class ToolTable(Mapping):
    """Tools keyed by name, in the order they are offered to the model."""

    def __init__(self, tools: Iterable[GuestTool]):
        self._tools: Dict[str, GuestTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def __getitem__(self, name: str) -> GuestTool:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def manifest(self) -> List[Dict[str, Any]]:
        """Tool schemas for the completion call; the last one is cache-marked."""
        tools = list(self._tools.values())
        return [
            tool.to_tool(cache=(i == len(tools) - 1))
            for i, tool in enumerate(tools)
        ]
