"""Answers to an event's custom confirmation questions."""

import logging
from typing import Any, Dict, Optional, Tuple

from ...guests.models import ConfirmationOption, ConfirmationQuestion
from .base import GuestTool, event_id_property

logger = logging.getLogger(__name__)


class AdditionalConfirmationsTool(GuestTool):
    """
    Records a guest's answer to a confirmation question.

    The raw answer is always stored. ``mappedToOptionId`` is kept only
    when it is one of the question's own options. Answering the same
    question again overwrites the previous answer.
    """

    name = "additional_confirmations"
    description = (
        "Map a guest's answer to one of the event's additional confirmation questions. "
        "Use this when a guest has responded to a confirmation question."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property(),
            "confirmationQuestionId": {
                "type": "string",
                "description": "The ID of the confirmation question being answered.",
            },
            "guestId": {"type": "string", "description": "The ID of the guest who answered."},
            "guestResponse": {
                "type": "string",
                "description": "The raw response to the confirmation question.",
            },
            "mappedToOptionId": {
                "type": "string",
                "description": "The ID of the option that best matches the guest's response.",
            },
        },
        "required": ["eventId", "confirmationQuestionId", "guestId", "guestResponse", "mappedToOptionId"],
    }

    async def _resolve(
        self, tool_input: Dict[str, Any]
    ) -> Tuple[Optional[ConfirmationQuestion], Optional[ConfirmationOption]]:
        question = await self.stores.confirmation_questions.get_question(
            tool_input["confirmationQuestionId"]
        )
        if question is None:
            return None, None
        return question, question.option(tool_input.get("mappedToOptionId"))

    def _summary(
        self,
        event_id: str,
        tool_input: Dict[str, Any],
        question: ConfirmationQuestion,
        option: Optional[ConfirmationOption],
    ) -> str:
        _, guest_name = self.get_guest_metadata(event_id, tool_input)
        mapped = f" mapped to {option.label}" if option else "."
        return f"Guest {guest_name} has confirmed {tool_input['guestResponse']} for {question.label}{mapped}"

    @staticmethod
    def _not_found(tool_input: Dict[str, Any]) -> str:
        return (
            f"Confirmation question not found: {tool_input['confirmationQuestionId']}. "
            "Make sure to use the correct confirmation question ID."
        )

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        question, option = await self._resolve(tool_input)
        if question is None:
            return self._not_found(tool_input)
        if option is None and tool_input.get("mappedToOptionId"):
            logger.info(
                f"[AdditionalConfirmationsTool] Option {tool_input['mappedToOptionId']} "
                f"does not belong to question {question.id}; storing raw response only"
            )
        await self.stores.confirmation_responses.upsert_response(
            guest_id=guest_id,
            question_id=question.id,
            custom_response=tool_input["guestResponse"],
            selected_option_id=option.id if option else None,
        )
        return self._summary(event_id, tool_input, question, option)

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> str:
        question, option = await self._resolve(tool_input)
        if question is None:
            return self._not_found(tool_input)
        return self._summary(event_id, tool_input, question, option)
