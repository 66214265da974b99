"""Prompt renderers for the main chatbot agent and the guest handler agent.

Each renderer returns one prompt fragment. The main agent's system prompt
is assembled by ``ChatbotService`` as an ordered list of text blocks: the
base prompt, one block per event, and the RSVP status block.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from dateutil import tz

from ..guests.models import ConfirmationQuestion, EventContext, GuestContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_time(value: str) -> str:
    """Turn "18:30" into "6:30 PM". Anything unparseable is returned as-is."""
    if not value or ":" not in value:
        return value
    hour_part, minute_part = value.split(":")[:2]
    try:
        hours, minutes = int(hour_part or 0), int(minute_part or 0)
    except ValueError:
        return value
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


def format_venue_purpose(purpose: str) -> str:
    """``MAIN_CEREMONY`` -> ``Main Ceremony``."""
    return (purpose or "").replace("_", " ").title()


def format_event_datetime(event: EventContext) -> str:
    """Long-form date in the event's timezone plus its 12h start/end times."""
    try:
        zone = tz.gettz(event.timezone or "UTC") or tz.UTC
        when = event.date
        if isinstance(when, datetime):
            if when.tzinfo is None:
                when = when.replace(tzinfo=tz.UTC)
            when = when.astimezone(zone)
        formatted = f"{when:%A, %B} {when.day}, {when.year}"
    except (AttributeError, TypeError, ValueError) as e:
        logger.error(f"Error formatting date for event {event.event_id}: {e}")
        formatted = str(event.date)

    if event.start_time and event.end_time:
        formatted += f" from {format_time(event.start_time)} to {format_time(event.end_time)} {event.timezone}"
    elif event.start_time:
        formatted += f" at {format_time(event.start_time)} {event.timezone}"
    return formatted.rstrip()


# ---------------------------------------------------------------------------
# Main agent
# ---------------------------------------------------------------------------

_MAIN_ROLE = """
## Your role
You are the WhatsApp assistant for special events such as weddings, birthdays and graduations.
You have two goals:
1. Answer the guest's questions about the event(s) they are invited to, using only the information provided to you.
2. Help the hosts manage RSVPs. If the guest or any of their companions has a pending RSVP, ask whether they would like to confirm their attendance.

## Tone
- Warm, brief and natural. Messages are read on a phone, so keep them short.
- Reply in the language the guest writes in.
- Be proactive about pending RSVPs and missing confirmations without being pushy.

## What you know
- The details of every event this phone number is invited to, its venues and any additional confirmation questions.
- Each guest's RSVP status and companions per event.
- If the information needed to answer is not available, say so and suggest contacting the hosts. Never invent details.
""".strip()

_SINGLE_EVENT_GUIDELINES = """
## Guidelines
1. The guest is invited to one event. Its details are in the event block below.
2. Use "get_event_details" for questions the event block does not answer (FAQ, table assignment, the guest's own profile).
3. For any change to RSVPs, dietary restrictions, notes, companion names, answers to additional confirmations or special requests, use "delegate_guest_handling" and pass the guest's instruction in natural language.
4. Every tool call needs the event ID, which you will find in the event block. Never mention event IDs or tools to the guest.
""".strip()

_MULTI_EVENT_GUIDELINES = """
## Guidelines
1. This phone number is invited to several events. Each has its own event block below with its own ID.
2. Work out which event the guest is talking about. If it is unclear, ask.
3. Use "get_event_details" for questions the event blocks do not answer (FAQ, table assignment, the guest's own profile).
4. For any change to RSVPs, dietary restrictions, notes, companion names, answers to additional confirmations or special requests, use "delegate_guest_handling" and pass the guest's instruction in natural language.
5. If the guest has pending RSVPs for more than one event, offer to confirm them all at once. When they answer, make one "delegate_guest_handling" call per event, each with that event's ID.
6. The guest may appear under a different name in each invitation. That is expected.
7. Never mention event IDs or tools to the guest.
""".strip()


def render_main_base_prompt(multi_event: bool) -> str:
    guidelines = _MULTI_EVENT_GUIDELINES if multi_event else _SINGLE_EVENT_GUIDELINES
    return f"{_MAIN_ROLE}\n\n{guidelines}"


def _render_response(guest: GuestContext, question_id: str) -> str:
    response = guest.response_for(question_id)
    if response is None:
        return f"{guest.name} has not responded yet"
    mapped = f" (mapped to option {response.selected_option_id})" if response.selected_option_id else ""
    return f"{guest.name} responded: {response.custom_response}{mapped}"


def render_confirmation_block(
    question: ConfirmationQuestion,
    guest: GuestContext,
    include_ids: bool = False,
) -> str:
    """One confirmation question with its options and the answers so far."""
    options = "\n".join(
        f"- {opt.label} (Option ID: {opt.id})" if include_ids else f"- {opt.label}"
        for opt in question.options
    ) or "- (free text)"
    companions = "\n".join(
        f"  - {companion.name} (ID: {companion.id}): {_render_response(companion, question.id)}"
        if include_ids else f"  - {_render_response(companion, question.id)}"
        for companion in guest.companions
    )
    lines = [
        f"<confirmation question=\"{question.label}\">",
        f"Question ID: {question.id} (use this ID for the \"additional_confirmations\" tool, never ask the guest for it)"
        if include_ids else f"Topic: {question.label}",
        f"How to ask: {question.best_way_to_ask}" if question.best_way_to_ask else "",
        "Options:",
        options,
        "Answers so far:",
        f"  - {_render_response(guest, question.id)}",
    ]
    if companions:
        lines.append(companions)
    lines.append("</confirmation>")
    return "\n".join(line for line in lines if line)


def render_event_block(event: EventContext, guest: Optional[GuestContext]) -> str:
    venues = "\n\n".join(
        f"{format_venue_purpose(v.purpose)}: {v.name}" + (f"\n   Address: {v.address}" if v.address else "")
        for v in event.venues
    ) or "No venue information available."
    block = [
        f"<event name=\"{event.name}\" id=\"{event.event_id}\">",
        f"ID: {event.event_id}",
        "The event ID identifies the event in tool calls. It is internal, never mention it.",
        "<tool-call-instructions>",
        f"Use {event.event_id} as the eventId of every tool call about {event.name}.",
        "</tool-call-instructions>",
        "<general-event-details>",
        f"Event name: {event.name}",
        f"Date and time: {format_event_datetime(event)}",
        f"Hosts: {event.hosts}",
        "</general-event-details>",
        "<venues>",
        venues,
        "</venues>",
    ]
    if event.confirmations and guest is not None:
        block.append("<additional-confirmations>")
        block.append(
            f"{event.name} asks guests to answer these questions. When the guest answers one, "
            "use \"delegate_guest_handling\" with a clear instruction describing the answer."
        )
        block.extend(render_confirmation_block(q, guest) for q in event.confirmations)
        block.append("</additional-confirmations>")
    block.append("</event>")
    return "\n".join(block)


def render_rsvp_status_block(guests: Iterable[GuestContext], events: Iterable[EventContext]) -> str:
    guests = list(guests)
    by_id = {e.event_id: e for e in events}
    who = "each guest" if len(guests) > 1 else "the guest"
    parts: List[str] = [
        "<rsvp-status-per-event>",
        f"Use this to know the RSVP status of {who}:",
    ]
    for guest in guests:
        event = by_id.get(guest.event_id)
        if event is None:
            continue
        parts.append(f"<event id=\"{event.event_id}\" name=\"{event.name}\">")
        parts.append(f"\"{guest.name}\" is how {event.hosts} refer to the person you are talking to.")
        parts.append(f"RSVP status: {guest.status}")
        parts.append(f"Invited by: {guest.inviter}" if guest.inviter else "No inviter specified")
        if guest.has_multiple_guests:
            count = len(guest.companions)
            parts.append(
                f"{guest.name} may bring up to {count} companion(s). They may swap a companion "
                "for someone else by giving the new name. Before cancelling a companion, check "
                "whether they only want to change who comes."
            )
            if guest.companions:
                parts.append(
                    "Companions (placeholder names such as \"Guest 1\" or \"Invitado 1\" are not real names):"
                )
                for companion in guest.companions:
                    dietary = companion.dietary_restrictions or "No dietary restrictions"
                    parts.append(f"- {companion.name}: RSVP {companion.status}, {dietary}")
                parts.append(
                    f"If any companion has not RSVPed yet, ask {guest.name} whether they will attend."
                )
        else:
            parts.append(f"{guest.name}'s invitation is for them only.")
        parts.append("</event>")
    parts.append("</rsvp-status-per-event>")
    return "\n".join(parts)


PLACEHOLDER_USER_QUERY = (
    "<information-on-user-query>No explicit user query found in this last message. "
    "Refer to the previous messages to understand the user's intent.</information-on-user-query>"
)


def render_user_prompt(query: str) -> str:
    """Wrap the guest's latest message with the per-turn instructions."""
    return f"""
<user-question>
{query}
</user-question>

<instructions>
- Never show XML tags in your reply.
- Reply only with the message the guest should read, in plain natural language. No reasoning or explanations.
- Use "delegate_guest_handling" for anything related to RSVPs, confirmations or other guest changes.
- When the message clearly confirms attendance or answers a confirmation question, delegate right away without asking for confirmation first.
</instructions>

<proactive-confirmation-instructions>
- If the guest has pending RSVPs for one or more events, offer to confirm them.
- If companions have pending RSVPs, offer to confirm those too. Refer to placeholder-named companions as "additional guests".
- If the event has additional confirmation questions the guest has not answered, ask about them.
</proactive-confirmation-instructions>

<order-of-operations>
Keep the conversation short by following this order:
1. If the guest asked for information about an event, answer it.
2. Otherwise, check for pending RSVPs (the guest's or their companions').
3. If there are any, ask whether they will attend.
4. Once RSVPs are settled, check for unanswered additional confirmations.
5. If nothing is pending, mention that you can also note dietary restrictions and answer questions about the event.
Ask one or two questions at a time. If you have to repeat a question, rephrase it or tell the guest they can answer whenever they are ready.
</order-of-operations>
""".strip()


# ---------------------------------------------------------------------------
# Guest handler agent
# ---------------------------------------------------------------------------

GUEST_HANDLER_SYSTEM_PROMPT = """
## Your role
You are the guest-update specialist in a multi-agent system that manages event invitations.
You turn natural-language instructions about guests into calls to the tools you are given.
You are not talking to the guest. You report back to the agent that is talking to the guest.

## Guests and companions
- Every guest has an ID and is one of:
  1. A solo guest, invited alone.
  2. A guest with a plus one, named or unnamed.
  3. A guest with several companions, such as a family. Companions may be unnamed.
- Companions are stored as separate guests with their own IDs and are managed through the main guest.
- Instructions may name a guest ("Mary") or refer to one indirectly ("his mom", "the plus one", "the child").
  Resolve indirect references using the guest list you are given.

## Tasks
1. Decide which tools to call, for which guest IDs and in which order.
2. Call them. You may call several tools in one turn.
3. Summarize what changed.

## When unsure
If the instruction is ambiguous, incomplete or refers to someone you cannot identify with confidence:
- Do not call any tool.
- End the turn with a clarification request explaining exactly what is missing.
- State clearly that no changes were made.

## Output format
Reply with a JSON object containing one or more of:
{
  "actionsExecuted": [{"action": "update_rsvp", "summary": "Set RSVP of Mary (ID 'abc') to DECLINED"}],
  "clarificationRequest": "Which companion does 'the child' refer to?",
  "followUpSuggestion": "Ask whether the other companions are attending too."
}

## Tools
- update_companion_name: rename a companion, which is also how one person is swapped for another
- update_dietary_restrictions
- update_rsvp
- add_notes_to_guest
- additional_confirmations
- create_special_request_from_guest: last resort when nothing else fits

## RSVP rules
- When updating one guest's RSVP and companions have different statuses, suggest asking about the rest of the group.
- You cannot add guests. Rename an existing companion instead.
- A confirmation coming from a guest who previously declined may be a mistake. Suggest double checking.
- After renaming a companion to a different person, check that companion's RSVP, dietary restrictions and confirmations, since they belonged to someone else.

## Examples
"Mary prefers tequila." -> additional_confirmations if it answers a confirmation question, otherwise add_notes_to_guest.
"My wife is not coming, I'm bringing my cousin Ana instead." -> update_companion_name.
"Juan is vegetarian and Memo will arrive late." -> update_dietary_restrictions for Juan, add_notes_to_guest for Memo.
"The plus one has no restrictions, the guest doesn't eat dairy." -> update_dietary_restrictions for the main guest only.
"Note that Ana and her guest arrive separately." -> add_notes_to_guest for Ana.
"Memo doesn't eat red meat." -> update_dietary_restrictions for Memo.
""".strip()


def _describe_companions(guest: GuestContext) -> str:
    if not guest.has_multiple_guests:
        return "0 (solo guest)"
    if len(guest.companions) == 1:
        return f"1 ({guest.name} with a plus one)"
    return f"{guest.name} plus {len(guest.companions)} companions"


def render_guest_handler_user_prompt(
    instruction: str,
    main_guest: GuestContext,
    event_id: str,
    event_name: str,
    confirmations: List[ConfirmationQuestion],
) -> str:
    companions = "\n".join(
        f"- {c.name} (ID: \"{c.id}\"): rsvp {c.status}, dietary: {c.dietary_restrictions or 'None'}, "
        f"notes: {c.notes or 'None'}"
        for c in main_guest.companions
    )
    lines = [
        f"Event name: {event_name}",
        f"Event ID: {event_id}",
        "<user-context>",
        f"Main guest: {main_guest.name} (ID: \"{main_guest.id}\")",
        f"RSVP status: {main_guest.status}",
        f"Current dietary restrictions: {main_guest.dietary_restrictions or 'None'}",
        f"Current notes: {main_guest.notes or 'None'}",
        f"Number of companions: {_describe_companions(main_guest)}",
        f"Companions:\n{companions}" if companions else "No companions known",
    ]
    if confirmations:
        lines.append("<additional-confirmations>")
        lines.append(
            f"{event_name} requires additional confirmations. The instruction may be an answer to one of these:"
        )
        lines.extend(render_confirmation_block(q, main_guest, include_ids=True) for q in confirmations)
        lines.append("</additional-confirmations>")
    lines.append("</user-context>")
    lines.append(f"<instruction>\n\"{instruction}\"\n</instruction>")

    behavior = [
        "<response-behavior>",
        "- Be strictly functional. List the guests whose details changed with their names and IDs.",
        "- If only some companions were updated, add a followUpSuggestion about the others.",
    ]
    if confirmations:
        behavior.append(
            "- If additional confirmations are still unanswered, add a followUpSuggestion to ask about them."
        )
        behavior.append(
            "- A note or comment may actually answer a confirmation question "
            "(e.g. \"I prefer tequila\" for a drinks question)."
        )
    behavior.extend([
        "- If matching a guest is unclear, include a clarificationRequest the orchestrator can pass to the guest.",
        "- Never add open-ended offers such as \"Anything else I can help with?\".",
        "</response-behavior>",
    ])
    return "\n".join(lines + behavior)
