"""RSVP status tool."""

import logging
from typing import Any, Dict

from ...constants import RSVP_STATUSES
from .base import GuestTool, event_id_property

logger = logging.getLogger(__name__)


class UpdateRsvpTool(GuestTool):
    name = "update_rsvp"
    description = (
        "Update a guest's RSVP status. Use this when a guest wants to confirm or change "
        "their attendance, or explicitly indicates they want to RSVP. Valid statuses are "
        "CONFIRMED, PENDING and DECLINED."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property(),
            "guestId": {"type": "string", "description": "The ID of the guest"},
            "status": {
                "type": "string",
                "enum": list(RSVP_STATUSES),
                "description": (
                    "The new RSVP status. Use PENDING when the guest is unsure "
                    "about their attendance."
                ),
            },
        },
        "required": ["eventId", "guestId", "status"],
    }

    def _summary(self, event_id: str, tool_input: Dict[str, Any]) -> str:
        _, guest_name = self.get_guest_metadata(event_id, tool_input)
        return f"Guest {guest_name} updated to {tool_input['status']} for event {self.event_name(event_id)}"

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        status = tool_input["status"]
        if status not in RSVP_STATUSES:
            raise ValueError(f"Invalid RSVP status: {status}")
        logger.info(f"[UpdateRsvpTool] Updating guest {guest_id} to {status} for event {event_id}")
        await self.stores.guests.update_fields(guest_id, {"status": status})
        return self._summary(event_id, tool_input)

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        return self._summary(event_id, tool_input)
