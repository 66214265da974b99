"""Tools that edit a guest's own profile fields."""

from typing import Any, Dict

from .base import GuestTool, event_id_property

_GUEST_ID = {"type": "string", "description": "The ID of the guest"}


class UpdateDietaryRestrictionsTool(GuestTool):
    name = "update_dietary_restrictions"
    description = (
        "Update a guest's dietary restrictions. Use this when a guest wants to record "
        "or change what they can or cannot eat."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property(),
            "guestId": _GUEST_ID,
            "dietaryRestrictions": {"type": "string", "description": "The new dietary restrictions."},
        },
        "required": ["eventId", "guestId", "dietaryRestrictions"],
    }

    def _summary(self, event_id: str, tool_input: Dict[str, Any]) -> str:
        _, guest_name = self.get_guest_metadata(event_id, tool_input)
        return f"Guest {guest_name}'s dietary restrictions updated to {tool_input['dietaryRestrictions']}"

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        await self.stores.guests.update_fields(
            guest_id, {"dietary_restrictions": tool_input["dietaryRestrictions"]}
        )
        return self._summary(event_id, tool_input)

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        return self._summary(event_id, tool_input)


class AddNotesToGuestTool(GuestTool):
    name = "add_notes_to_guest"
    description = (
        "Add notes to a guest. Use this when the user mentions something about a guest "
        "that no other tool covers, such as arriving late or needing a wheelchair."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property(),
            "guestId": _GUEST_ID,
            "notes": {"type": "string", "description": "The notes to store for the guest"},
        },
        "required": ["eventId", "guestId", "notes"],
    }

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        row = await self.stores.guests.update_fields(guest_id, {"notes": tool_input["notes"]})
        if row and row.get("name"):
            guest_name = row["name"]
        else:
            _, guest_name = self.get_guest_metadata(event_id, tool_input)
        return f"Guest {guest_name}'s notes updated to {tool_input['notes']}"

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        _, guest_name = self.get_guest_metadata(event_id, tool_input)
        return f"Guest {guest_name}'s notes updated to {tool_input['notes']}"


class UpdateCompanionNameTool(GuestTool):
    """Renames a companion. This is how a plus-one is swapped for someone else."""

    name = "update_companion_name"
    description = (
        "Update the name of one of a guest's companions. Also use this to 'replace' a "
        "companion with a different person by changing the companion's name."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property(),
            "companionName": {"type": "string", "description": "The new companion name."},
            "guestId": {
                "type": "string",
                "description": "The ID of the companion. This is the companion, not the main guest.",
            },
        },
        "required": ["eventId", "companionName", "guestId"],
    }

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        row = await self.stores.guests.rename_companion(guest_id, tool_input["companionName"])
        if row is None:
            raise ValueError(f"Guest {guest_id} is not a companion and cannot be renamed")
        return f"Companion name updated to {row['name']}"

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        return f"Companion name updated to {tool_input['companionName']}"
