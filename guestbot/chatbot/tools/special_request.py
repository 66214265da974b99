"""Free-text requests routed to the hosts for manual review."""

from typing import Any, Dict

from .base import GuestTool, event_id_property


def _noted(request: str, guest_name: str) -> str:
    return (
        f"\"{request}\" from {guest_name} noted! We'll let the hosts know and get back "
        "to you as soon as possible."
    )


class CreateSpecialRequestFromGuestTool(GuestTool):
    name = "create_special_request_from_guest"
    description = (
        "When the guest has a special request that no other tool or confirmation question "
        "covers, create a request to be reviewed and handled manually by the event team."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property("The ID of the event the request is for."),
            "guestId": {"type": "string", "description": "The ID of the guest making the request."},
            "specialRequest": {"type": "string", "description": "The special request from the guest."},
        },
        "required": ["eventId", "guestId", "specialRequest"],
    }

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        guest = await self.stores.guests.get(guest_id)
        if not guest:
            raise ValueError("Guest not found")
        await self.stores.guest_requests.create(
            guest_id=guest_id,
            event_id=guest["event_id"],
            request_text=tool_input["specialRequest"],
        )
        return _noted(tool_input["specialRequest"], guest["name"])

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        _, guest_name = self.get_guest_metadata(event_id, tool_input)
        return _noted(tool_input["specialRequest"], guest_name)
