"""Tests for guestbot.chatbot.prompts"""

from datetime import datetime

from guestbot.chatbot.prompts import (
    format_event_datetime,
    format_time,
    format_venue_purpose,
    render_confirmation_block,
    render_event_block,
    render_main_base_prompt,
    render_rsvp_status_block,
)
from guestbot.guests.models import EventContext, GuestConfirmationResponse, GuestContext

from fakes import MARY_ID


# =========================================================================
# Formatting helpers
# =========================================================================


class TestFormatTime:

    def test_afternoon(self):
        assert format_time("18:30") == "6:30 PM"

    def test_midnight_and_noon(self):
        assert format_time("00:05") == "12:05 AM"
        assert format_time("12:00") == "12:00 PM"

    def test_unparseable_returned_as_is(self):
        assert format_time("") == ""
        assert format_time("evening") == "evening"
        assert format_time("ab:cd") == "ab:cd"


class TestFormatEventDatetime:

    def test_converts_to_event_timezone(self, wedding):
        # 18:00 UTC on Dec 12 is still Dec 12 in Mexico City
        assert format_event_datetime(wedding) == (
            "Saturday, December 12, 2026 from 6:00 PM to 11:30 PM America/Mexico_City"
        )

    def test_naive_date_and_start_only(self):
        event = EventContext(
            event_id="e", name="Party", date=datetime(2027, 3, 1, 2, 0),
            start_time="20:00", timezone="America/Mexico_City",
        )
        # 02:00 UTC is the previous evening in Mexico City
        assert format_event_datetime(event) == "Sunday, February 28, 2027 at 8:00 PM America/Mexico_City"

    def test_venue_purpose(self):
        assert format_venue_purpose("MAIN_CEREMONY") == "Main Ceremony"


# =========================================================================
# Main agent blocks
# =========================================================================


class TestMainPrompt:

    def test_single_and_multi_event_guidelines(self):
        assert "invited to one event" in render_main_base_prompt(multi_event=False)
        assert "several events" in render_main_base_prompt(multi_event=True)

    def test_event_block(self, wedding, mary):
        block = render_event_block(wedding, mary)
        assert block.startswith("<event name=\"Boda Mary & Luis\" id=\"evt_1\">")
        assert "Hosts: Mary & Luis" in block
        assert "Main Ceremony: Hacienda San Gabriel\n   Address: Km 5 Carretera" in block
        assert "<additional-confirmations>" in block
        assert block.endswith("</event>")

    def test_event_block_without_guest_skips_confirmations(self, wedding):
        assert "<additional-confirmations>" not in render_event_block(wedding, None)

    def test_confirmation_block_shows_answers(self, drink_question, mary):
        mary.confirmation_responses = [GuestConfirmationResponse(
            guest_id=MARY_ID, question_id="q_drink",
            selected_option_id="opt_wine", custom_response="wine",
        )]
        block = render_confirmation_block(drink_question, mary)
        assert "Mary responded: wine (mapped to option opt_wine)" in block
        assert "Guest 1 has not responded yet" in block
        assert "Option ID" not in block

    def test_confirmation_block_with_ids(self, drink_question, mary):
        block = render_confirmation_block(drink_question, mary, include_ids=True)
        assert "Question ID: q_drink" in block
        assert "- Tequila (Option ID: opt_tequila)" in block

    def test_rsvp_block_with_companions(self, wedding, mary):
        block = render_rsvp_status_block([mary], [wedding])
        assert "RSVP status: PENDING" in block
        assert "may bring up to 2 companion(s)" in block
        assert "- Guest 1: RSVP PENDING, No dietary restrictions" in block

    def test_rsvp_block_solo_guest(self, wedding):
        solo = GuestContext(id="g_solo", event_id="evt_1", name="Pedro")
        block = render_rsvp_status_block([solo], [wedding])
        assert "Pedro's invitation is for them only." in block
        assert "No inviter specified" in block
