"""
Unit Tests for the Outcome Interpreter
Reply parsing and the single-shot extraction call
"""
import json

import pytest

from engagement.domain.errors import ParseError, TransientCollaboratorError
from engagement.domain.models.outcome import OutcomeIntent, PreferredMethod
from engagement.domain.services.outcome_interpreter import (
    EXTRACTION_SYSTEM_PROMPT,
    OutcomeInterpreter,
    build_extraction_prompt,
    parse_intent,
)

from conftest import make_llm


class TestParseIntent:
    """Tests for decoding model replies"""

    def test_direct_json(self):
        intent = parse_intent(
            '{"preferredMethod": "email", "contactInfo": {"email": "jane@example.com", "phone": null}, '
            '"scheduleDays": null, "specificTime": null, "resentLink": false, '
            '"isBusy": false, "notInterested": false}'
        )

        assert intent.preferred_method == PreferredMethod.EMAIL
        assert intent.contact_info.email == "jane@example.com"
        assert intent.contact_info.phone is None
        assert intent.resent_link is False

    def test_json_wrapped_in_prose(self):
        raw = (
            "Sure! Here is the extraction:\n"
            '{"preferredMethod": "schedule", "scheduleDays": 3, "specificTime": "14:30"}\n'
            "Let me know if you need anything else."
        )

        intent = parse_intent(raw)

        assert intent.preferred_method == PreferredMethod.SCHEDULE
        assert intent.schedule_days == 3
        assert intent.specific_time == "14:30"

    def test_garbage_raises_parse_error(self):
        with pytest.raises(ParseError) as exc:
            parse_intent("I could not understand the conversation")

        assert exc.value.raw == "I could not understand the conversation"

    def test_non_object_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_intent("[1, 2, 3]")

    def test_object_quoted_as_json_string(self):
        raw = json.dumps(json.dumps({"preferredMethod": "busy", "isBusy": True}))

        intent = parse_intent(raw)

        assert intent.preferred_method == PreferredMethod.BUSY
        assert intent.is_busy is True

    def test_object_inside_json_array(self):
        intent = parse_intent('[{"preferredMethod": "phone"}]')

        assert intent.preferred_method == PreferredMethod.PHONE

    def test_wrong_shape_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_intent('{"contactInfo": "none"}')

    def test_unknown_method_becomes_none(self):
        intent = parse_intent('{"preferredMethod": "carrier pigeon"}')

        assert intent.preferred_method == PreferredMethod.NONE

    def test_time_not_in_24h_format_is_dropped(self):
        intent = parse_intent('{"preferredMethod": "schedule", "scheduleDays": 2, "specificTime": "6 PM"}')

        assert intent.specific_time is None
        assert intent.schedule_days == 2

    def test_single_digit_hour_is_normalized(self):
        intent = parse_intent('{"specificTime": "9:05"}')

        assert intent.specific_time == "09:05"

    def test_string_flags_and_numbers_are_coerced(self):
        intent = parse_intent('{"isBusy": "true", "notInterested": "no", "scheduleDays": "7"}')

        assert intent.is_busy is True
        assert intent.not_interested is False
        assert intent.schedule_days == 7

    def test_zero_days_means_no_schedule(self):
        intent = parse_intent('{"preferredMethod": "schedule", "scheduleDays": 0}')

        assert intent.schedule_days is None

    def test_busy_method_counts_as_busy(self):
        intent = parse_intent('{"preferredMethod": "busy"}')

        assert intent.wants_busy_callback is True


class TestOutcomeInterpreter:
    """Tests for OutcomeInterpreter.interpret"""

    @pytest.mark.asyncio
    async def test_empty_transcript_skips_model(self):
        llm = make_llm()
        interpreter = OutcomeInterpreter(llm)

        intent = await interpreter.interpret("   ")

        assert intent == OutcomeIntent.no_information()
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_single_json_mode_request(self):
        llm = make_llm({"preferredMethod": "phone", "contactInfo": {"phone": "+15550001111"}})
        interpreter = OutcomeInterpreter(llm)

        intent = await interpreter.interpret("Agent: Hi\nUser: text me at 555 000 1111")

        assert intent.preferred_method == PreferredMethod.PHONE
        assert intent.contact_info.phone == "+15550001111"

        llm.complete.assert_awaited_once()
        args, kwargs = llm.complete.call_args
        assert "User: text me at 555 000 1111" in args[0]
        assert kwargs["system_prompt"] == EXTRACTION_SYSTEM_PROMPT
        assert kwargs["json_mode"] is True
        assert kwargs["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_no_information(self):
        llm = make_llm()
        llm.complete.return_value = "Sorry, I can't help with that."
        interpreter = OutcomeInterpreter(llm)

        intent = await interpreter.interpret("Agent: Hello?")

        assert intent.preferred_method == PreferredMethod.NONE
        assert intent.is_busy is False
        assert intent.not_interested is False
        assert intent.resent_link is False

    @pytest.mark.asyncio
    async def test_collaborator_errors_propagate(self):
        llm = make_llm()
        llm.complete.side_effect = TransientCollaboratorError("timed out", collaborator="groq")
        interpreter = OutcomeInterpreter(llm)

        with pytest.raises(TransientCollaboratorError):
            await interpreter.interpret("Agent: Hello?")

    def test_prompt_embeds_transcript_with_braces(self):
        prompt = build_extraction_prompt('User: my email is {jane}@example.com')

        assert prompt.endswith('User: my email is {jane}@example.com')
        assert "Return ONLY a JSON object" in prompt
