"""Chatbot tools and the tables both agents offer to the model."""

from .base import GuestResolutionError, GuestTool, ToolTable
from .confirmations import AdditionalConfirmationsTool
from .delegation import DelegateGuestHandlingTool
from .event_details import GetEventDetailsTool
from .profile import AddNotesToGuestTool, UpdateCompanionNameTool, UpdateDietaryRestrictionsTool
from .rsvp import UpdateRsvpTool
from .special_request import CreateSpecialRequestFromGuestTool


def guest_handler_tools(context, stores, test_mode: bool = False) -> ToolTable:
    """The mutation tools available to the guest handler agent."""
    return ToolTable([
        UpdateCompanionNameTool(context, stores, test_mode),
        UpdateDietaryRestrictionsTool(context, stores, test_mode),
        UpdateRsvpTool(context, stores, test_mode),
        AdditionalConfirmationsTool(context, stores, test_mode),
        AddNotesToGuestTool(context, stores, test_mode),
        CreateSpecialRequestFromGuestTool(context, stores, test_mode),
    ])


__all__ = [
    "GuestResolutionError",
    "GuestTool",
    "ToolTable",
    "guest_handler_tools",
    "AdditionalConfirmationsTool",
    "AddNotesToGuestTool",
    "CreateSpecialRequestFromGuestTool",
    "DelegateGuestHandlingTool",
    "GetEventDetailsTool",
    "UpdateCompanionNameTool",
    "UpdateDietaryRestrictionsTool",
    "UpdateRsvpTool",
]
