"""Tests for guestbot.chatbot.guest_handler_agent"""

import json

import pytest

from guestbot.chatbot.guest_handler_agent import GuestHandlerAgent, extract_clarification
from guestbot.constants import SUB_AGENT_ERROR_CLARIFICATION

from fakes import (
    COMPANION_1_ID,
    EVENT_ID,
    MARY_ID,
    FakeLLMClient,
    clarification_json,
    text_response,
    tool_response,
)


def _agent(context, stores, llm, **kwargs):
    return GuestHandlerAgent(
        event_id=EVENT_ID,
        context=context,
        llm_client=llm,
        stores=stores,
        session_id="sess_1",
        **kwargs,
    )


def _summary(action, summary):
    return json.dumps({"actionsExecuted": [{"action": action, "summary": summary}]})


# =========================================================================
# extract_clarification
# =========================================================================


class TestExtractClarification:

    def test_plain_json(self):
        assert extract_clarification(clarification_json("Which child?")) == "Which child?"

    def test_json_wrapped_in_prose(self):
        text = "Here is the result:\n" + clarification_json("Who is Memo?") + "\nThanks"
        assert extract_clarification(text) == "Who is Memo?"

    def test_no_clarification_key(self):
        assert extract_clarification(_summary("update_rsvp", "done")) is None

    def test_not_json(self):
        assert extract_clarification("Mary is now vegetarian") is None
        assert extract_clarification("{broken json") is None

    def test_braces_in_prose_before_summary(self):
        text = "I used {guestId} from the list.\n" + clarification_json("Which companion?")
        assert extract_clarification(text) == "Which companion?"

    def test_summary_followed_by_more_braces(self):
        text = clarification_json("Who is Memo?") + "\nnote: {see above}"
        assert extract_clarification(text) == "Who is Memo?"


# =========================================================================
# Instruction scenarios
# =========================================================================


class TestHandleInstruction:

    @pytest.mark.asyncio
    async def test_dietary_update_for_primary_guest(self, context, stores, mary):
        llm = FakeLLMClient([
            tool_response([("update_dietary_restrictions", {
                "eventId": EVENT_ID, "guestId": MARY_ID, "dietaryRestrictions": "vegetarian",
            })]),
            text_response(_summary("update_dietary_restrictions", "Mary (ID 'g_mary') is now vegetarian")),
        ])
        reply = await _agent(context, stores, llm).handle_instruction("Mary is vegetarian", mary)

        assert stores.guests.updates == [(MARY_ID, {"dietary_restrictions": "vegetarian"})]
        assert llm.tool_names_called() == ["update_dietary_restrictions"]
        assert "Mary" in reply.text
        assert reply.clarification_needed is None

    @pytest.mark.asyncio
    async def test_companion_swap_renames_existing_companion(self, context, stores, mary):
        llm = FakeLLMClient([
            tool_response([("update_companion_name", {
                "eventId": EVENT_ID, "guestId": COMPANION_1_ID, "companionName": "Ana",
            })]),
            text_response(_summary("update_companion_name", "Guest 1 renamed to Ana")),
        ])
        await _agent(context, stores, llm).handle_instruction(
            "I'm bringing my friend Ana instead of my wife", mary
        )

        assert llm.tool_names_called() == ["update_companion_name"]
        assert stores.guests.rows[COMPANION_1_ID]["name"] == "Ana"
        assert len(stores.guests.rows) == 3
        assert stores.guest_requests.created == []

    @pytest.mark.asyncio
    async def test_ambiguous_reference_asks_for_clarification(self, context, stores, mary):
        llm = FakeLLMClient([
            text_response(clarification_json(
                "Which companion is 'the child', Guest 1 or Guest 2? No changes were made."
            )),
        ])
        reply = await _agent(context, stores, llm).handle_instruction("The child is allergic to nuts", mary)

        assert stores.guests.updates == []
        assert reply.clarification_needed.startswith("Which companion is 'the child'")
        assert "Clarification Needed:" in reply.to_tool_result()

    @pytest.mark.asyncio
    async def test_transport_failure_after_text_returns_earlier_text(self, context, stores, mary):
        llm = FakeLLMClient([
            tool_response([("update_rsvp", {"eventId": EVENT_ID, "guestId": MARY_ID, "status": "CONFIRMED"})]),
            tool_response(
                [("update_rsvp", {"eventId": EVENT_ID, "guestId": COMPANION_1_ID, "status": "CONFIRMED"})],
                text="Mary is confirmed, confirming Guest 1 next",
            ),
            ConnectionError("connection reset"),
        ])
        reply = await _agent(context, stores, llm).handle_instruction("We are all coming", mary)

        assert reply.text == "Mary is confirmed, confirming Guest 1 next"
        execution = stores.executions.by_agent("agent_sub_agent")[0]
        assert execution["status"] == "COMPLETED"

    @pytest.mark.asyncio
    async def test_first_call_failure_returns_clarification(self, context, stores, mary):
        llm = FakeLLMClient([RuntimeError("overloaded")])
        reply = await _agent(context, stores, llm).handle_instruction("Mary is vegetarian", mary)

        assert reply.text == ""
        assert reply.clarification_needed == SUB_AGENT_ERROR_CLARIFICATION
        execution = stores.executions.by_agent("agent_sub_agent")[0]
        assert execution["status"] == "FAILED"

    @pytest.mark.asyncio
    async def test_setup_failure_is_contained(self, context, stores, mary):
        async def broken_start(**kwargs):
            raise RuntimeError("db down")

        stores.executions.start = broken_start
        reply = await _agent(context, stores, FakeLLMClient()).handle_instruction("Mary is vegetarian", mary)
        assert reply.clarification_needed == SUB_AGENT_ERROR_CLARIFICATION

    @pytest.mark.asyncio
    async def test_tool_calls_pinned_to_agent_event(self, context, stores, mary):
        llm = FakeLLMClient([
            tool_response([("update_rsvp", {"eventId": MARY_ID, "guestId": MARY_ID, "status": "DECLINED"})]),
            text_response(_summary("update_rsvp", "Mary declined")),
        ])
        await _agent(context, stores, llm).handle_instruction("Mary can't make it", mary)

        assert stores.guests.rows[MARY_ID]["status"] == "DECLINED"

    @pytest.mark.asyncio
    async def test_test_mode_does_not_write(self, context, stores, mary):
        llm = FakeLLMClient([
            tool_response([("update_rsvp", {"eventId": EVENT_ID, "guestId": MARY_ID, "status": "CONFIRMED"})]),
            text_response(_summary("update_rsvp", "Mary confirmed")),
        ])
        await _agent(context, stores, llm, test_mode=True).handle_instruction("Mary is coming", mary)

        assert stores.guests.updates == []
        tool_result = llm.calls[1]["messages"][-1]["content"][0]["content"]
        assert tool_result == "Guest Mary updated to CONFIRMED for event Boda Mary & Luis"


# =========================================================================
# Prompt and ledger
# =========================================================================


class TestGuestHandlerLedger:

    @pytest.mark.asyncio
    async def test_user_prompt_lists_guests_and_confirmations(self, context, stores, mary):
        llm = FakeLLMClient([text_response(_summary("none", "nothing to do"))])
        await _agent(context, stores, llm).handle_instruction("Mary prefers tequila", mary)

        prompt = llm.calls[0]["messages"][0]["content"]
        assert f"Main guest: Mary (ID: \"{MARY_ID}\")" in prompt
        assert f"Guest 1 (ID: \"{COMPANION_1_ID}\")" in prompt
        assert "Question ID: q_drink" in prompt
        assert "Option ID: opt_tequila" in prompt
        assert "\"Mary prefers tequila\"" in prompt

    @pytest.mark.asyncio
    async def test_execution_links_to_parent(self, context, stores, mary):
        llm = FakeLLMClient([
            tool_response([("add_notes_to_guest", {"eventId": EVENT_ID, "guestId": MARY_ID, "notes": "late"})]),
            text_response(_summary("add_notes_to_guest", "noted")),
        ])
        await _agent(
            context, stores, llm,
            parent_execution_id="exec_main",
            parent_loop_iteration_id="iter_main",
        ).handle_instruction("Mary arrives late", mary)

        execution = stores.executions.by_agent("agent_sub_agent")[0]
        assert execution["parent_execution_id"] == "exec_main"
        assert execution["parent_loop_iteration_id"] == "iter_main"
        assert execution["status"] == "COMPLETED"
        assert execution["input_tokens"] == 20

        iterations = stores.iterations.for_execution(execution["id"])
        assert [i["iteration_number"] for i in iterations] == [1, 2]
        assert all(i["status"] == "COMPLETED" for i in iterations)
        assert iterations[0]["tool_calls"][0]["name"] == "add_notes_to_guest"
