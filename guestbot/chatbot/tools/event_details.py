"""Read-only event lookup: FAQ plus the calling guest's own profile."""

from typing import Any, Dict, List

from .base import GuestTool, event_id_property


class GetEventDetailsTool(GuestTool):
    name = "get_event_details"
    description = (
        "Get the details of an event by its ID. Returns the event's frequently asked "
        "questions and the guest's own details for that event. Use it to answer questions "
        "about the event the guest is attending."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property("The ID of the event to get the details for."),
        },
        "required": ["eventId"],
    }
    is_read_only = True

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        guest = await self.stores.guests.get(guest_id)
        if not guest:
            return "Could not find information about this guest"
        faq = await self.stores.events.list_active_faq(guest["event_id"])
        return (
            f"<event-details-{event_id}>\n"
            "<relevant-questions-and-answers>\n"
            f"{_format_faq(faq)}\n"
            "</relevant-questions-and-answers>\n"
            f"{_format_guest(guest)}\n"
            f"</event-details-{event_id}>"
        )

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        return f"Event {event_id} details fetched successfully."


def _format_faq(faq: List[Dict[str, Any]]) -> str:
    if not faq:
        return "No specific FAQ information available for this query."
    return "\n\n".join(f"Q: {q['question']}\nA: {q['answer']}" for q in faq)


def _format_guest(guest: Dict[str, Any]) -> str:
    def line(key: str, label: str, missing: str) -> str:
        value = guest.get(key)
        return f"{label}: {value}" if value else missing

    return "\n".join([
        "<relevant-context-about-guest-specific-for-this-event>",
        f"Name: {guest.get('name')}",
        f"Phone: {guest.get('phone')}",
        f"RSVP status: {guest.get('status')}",
        line("table_name", "Assigned table", "No info regarding table assignment"),
        line("dietary_restrictions", "Dietary restrictions", "No dietary restrictions specified"),
        line("notes", "Notes about the user", "No notes about the user"),
        line("category", "Category assigned to the user", "No category specified"),
        line("inviter", "Invited by", "No inviter specified"),
        "</relevant-context-about-guest-specific-for-this-event>",
    ])
