"""Tests for the dialog engine: phases, confirmation and degraded model paths."""

import asyncio

import pytest

from conftest import SANITIZED, FakeLLM

from jirani.db.engine import get_connection
from jirani.db.repositories import IncidentRepository
from jirani.graph.builder import build_engine
from jirani.graph.replies import CONFIRMED_REPLY, DECLINED_REPLY
from jirani.location.resolver import GAZETTEER
from jirani.models import InboundMessage, IncidentType, Phase
from jirani.pipeline.commit import CommitError

SENDER = "+254700000001"

ASK_DETAILS = "Pole sana! That sounds scary. Roughly what time did it happen?"
ASK_TO_FILE = "Thanks. Would you like me to file this report? Reply yes or no."


def say(engine, text, sender=SENDER, attachments=None):
    msg = InboundMessage(sender_id=sender, text=text, attachments=attachments or [])
    return asyncio.run(engine.handle(msg))


def state(engine, sender=SENDER):
    return asyncio.run(engine.nodes.store.load(sender))


def stored_incidents(db_path):
    return IncidentRepository(get_connection(db_path)).list_recent(50)


@pytest.fixture
def armed(engine, fake_llm):
    """Conversation with a theft draft awaiting confirmation."""
    fake_llm.replies = [ASK_DETAILS, ASK_TO_FILE]
    say(engine, "Someone stole my bag near Yaya Centre")
    say(engine, "It was around 3pm")
    return engine


class TestEndToEnd:
    def test_report_confirm_and_repeat_yes(self, engine, fake_llm, db_path, fallback_path):
        fake_llm.replies = [ASK_DETAILS, ASK_TO_FILE, "Karibu! Stay safe."]

        # 1. report
        result = say(engine, "Someone stole my bag near Yaya Centre")
        assert result.reply_text == ASK_DETAILS
        assert result.confirmed_incident is None
        conv = state(engine)
        assert conv.phase == Phase.COLLECTING
        assert conv.current_incident.type == IncidentType.THEFT
        assert conv.current_incident.location == "Yaya Centre"
        # the empathy phrase alone does not arm confirmation
        assert conv.awaiting_confirmation is False

        # 2. assistant asks to file
        result = say(engine, "It was around 3pm")
        assert result.reply_text == ASK_TO_FILE
        conv = state(engine)
        assert conv.awaiting_confirmation is True
        assert conv.phase == Phase.CONFIRMING
        assert conv.current_incident.location == "Yaya Centre"

        # 3. confirm
        result = say(engine, "yes")
        assert result.reply_text == CONFIRMED_REPLY
        incident = result.confirmed_incident
        assert incident is not None
        assert incident.coordinates == GAZETTEER["yaya centre"]
        assert incident.description == SANITIZED
        assert incident.from_ == SENDER
        conv = state(engine)
        assert conv.phase == Phase.COMPLETED
        assert conv.current_incident.confirmed is True
        assert conv.awaiting_confirmation is False

        # 4. a second "yes" files nothing
        result = say(engine, "yes")
        assert result.reply_text == "Karibu! Stay safe."
        assert result.confirmed_incident is None
        assert [i.id for i in stored_incidents(db_path)] == [incident.id]
        assert not fallback_path.exists()

    def test_history_records_both_sides(self, engine, fake_llm):
        fake_llm.replies = [ASK_DETAILS]
        say(engine, "Someone stole my bag near Yaya Centre")
        roles = [m.role.value for m in state(engine).messages]
        assert roles == ["user", "assistant"]

    def test_reply_context_contains_earlier_turns(self, engine, fake_llm):
        fake_llm.replies = [ASK_DETAILS, ASK_TO_FILE]
        say(engine, "Someone stole my bag near Yaya Centre")
        say(engine, "It was around 3pm")
        _, user_prompt, context = fake_llm.reply_calls[-1]
        assert user_prompt == "It was around 3pm"
        assert "user: Someone stole my bag near Yaya Centre" in context
        assert f"assistant: {ASK_DETAILS}" in context
        assert "It was around 3pm" not in context

    def test_state_survives_restart(self, engine, fake_llm, db_path, fallback_path):
        fake_llm.replies = [ASK_DETAILS, ASK_TO_FILE]
        say(engine, "Someone stole my bag near Yaya Centre")
        say(engine, "It was around 3pm")

        restarted = build_engine(llm=FakeLLM(), db_path=db_path, fallback_path=fallback_path)
        result = say(restarted, "yes")
        assert result.confirmed_incident is not None


class TestConfirmation:
    def test_yes_short_circuits_the_model(self, armed, fake_llm):
        before = len(fake_llm.reply_calls)
        result = say(armed, "yes")
        assert result.confirmed_incident is not None
        assert len(fake_llm.reply_calls) == before

    def test_yes_confirms_even_when_model_is_down(self, armed, fake_llm):
        fake_llm.fail = True
        result = say(armed, "yes")
        incident = result.confirmed_incident
        assert incident is not None
        assert incident.description.startswith("Theft/Robbery reported near Yaya Centre.")
        assert incident.coordinates == GAZETTEER["yaya centre"]

    def test_attachments_travel_with_confirmation(self, armed):
        result = say(armed, "yes", attachments=["media-123"])
        assert result.confirmed_incident.images == ["media-123"]

    def test_hedged_reply_does_not_file(self, armed, fake_llm, db_path):
        result = say(armed, "I'm not sure yet")
        assert result.confirmed_incident is None
        conv = state(armed)
        assert conv.awaiting_confirmation is True
        assert conv.current_incident is not None
        assert stored_incidents(db_path) == []

    def test_detail_question_does_not_arm(self, engine, fake_llm):
        fake_llm.replies = ["Pole sana. Can you confirm where exactly it happened?"]
        say(engine, "someone stole my phone")
        assert state(engine).awaiting_confirmation is False

        say(engine, "No, it was at the Westlands stage")
        conv = state(engine)
        assert conv.current_incident is not None
        assert conv.current_incident.location == "Westlands"
        assert conv.phase == Phase.COLLECTING

    def test_no_cancels_the_draft(self, armed, db_path):
        result = say(armed, "no")
        assert result.reply_text == DECLINED_REPLY
        assert result.confirmed_incident is None
        conv = state(armed)
        assert conv.current_incident is None
        assert conv.awaiting_confirmation is False
        assert conv.phase == Phase.GREETING
        assert stored_incidents(db_path) == []

    def test_extra_detail_while_confirming_keeps_waiting(self, armed, fake_llm):
        fake_llm.replies = ["Got it, thanks for the extra detail. Shall I file it now?"]
        result = say(armed, "He wore a red shirt and ran towards Westlands")
        assert result.confirmed_incident is None
        conv = state(armed)
        assert conv.awaiting_confirmation is True
        assert conv.phase == Phase.CONFIRMING
        assert conv.current_incident.location == "Westlands"

    def test_double_storage_failure_keeps_draft_pending(self, armed):
        pipeline = armed.nodes.pipeline
        pipeline._gate.mark_failed()
        pipeline._fallback.path = pipeline._fallback.path.parent  # a directory
        with pytest.raises(CommitError):
            say(armed, "yes")
        conv = state(armed)
        assert conv.awaiting_confirmation is True
        assert conv.current_incident.confirmed is False


class TestDetectionAndRefinement:
    def test_small_talk_stays_in_greeting(self, engine):
        say(engine, "hello, how are you")
        conv = state(engine)
        assert conv.phase == Phase.GREETING
        assert conv.current_incident is None

    def test_location_added_on_a_later_turn(self, engine, fake_llm):
        fake_llm.replies = ["Pole sana. Where did this happen?", "Thanks for letting me know."]
        say(engine, "someone stole my phone")
        assert state(engine).current_incident.location is None

        say(engine, "it was at Westlands")
        conv = state(engine)
        assert conv.current_incident.location == "Westlands"
        assert conv.phase == Phase.COLLECTING

    def test_detector_not_rerun_while_draft_is_pending(self, engine, fake_llm):
        say(engine, "someone stole my phone")
        first = state(engine).current_incident
        say(engine, "and then a man with a knife threatened me")
        conv = state(engine)
        assert conv.current_incident is first
        assert conv.current_incident.type == IncidentType.THEFT

    def test_new_incident_after_completion_reopens(self, armed):
        say(armed, "yes")
        old = state(armed).current_incident

        say(armed, "a man with a gun robbed me at Kasarani")
        conv = state(armed)
        assert conv.phase == Phase.COLLECTING
        assert conv.current_incident is not old
        assert conv.current_incident.type == IncidentType.ARMED_ROBBERY
        assert conv.current_incident.severity == 5
        assert conv.current_incident.confirmed is False


class TestModelOutage:
    def test_greeting_gets_canned_reply(self, engine, fake_llm):
        fake_llm.fail = True
        result = say(engine, "hello")
        assert "Jirani" in result.reply_text

    def test_identity_question(self, engine, fake_llm):
        fake_llm.fail = True
        assert "Jirani" in say(engine, "who are you?").reply_text

    def test_generic_reply(self, engine, fake_llm):
        fake_llm.fail = True
        assert say(engine, "blah").reply_text

    def test_report_can_be_filed_without_the_model(self, engine, fake_llm, db_path):
        fake_llm.fail = True
        result = say(engine, "someone stole my phone")
        assert "Would you like me to file this report?" in result.reply_text
        conv = state(engine)
        assert conv.awaiting_confirmation is True
        assert conv.current_incident.location is None

        result = say(engine, "yes")
        assert result.confirmed_incident is not None
        assert result.confirmed_incident.coordinates is None
        assert len(stored_incidents(db_path)) == 1

    def test_empty_model_reply_counts_as_failure(self, engine, fake_llm):
        fake_llm.replies = [""]
        result = say(engine, "hello")
        assert result.reply_text


class TestInvariantRepair:
    def test_awaiting_without_draft_is_reset(self, engine, fake_llm):
        conv = state(engine)
        conv.awaiting_confirmation = True
        conv.phase = Phase.CONFIRMING
        asyncio.run(engine.nodes.store.save(conv))

        fake_llm.replies = ["Hi! How can I help?"]
        result = say(engine, "yes")
        assert result.confirmed_incident is None
        assert result.reply_text == "Hi! How can I help?"
        conv = state(engine)
        assert conv.awaiting_confirmation is False
        assert conv.phase == Phase.GREETING

    def test_commit_without_draft_files_nothing(self, engine, db_path):
        conv = state(engine)
        conv.awaiting_confirmation = True
        msg = InboundMessage(sender_id=SENDER, text="yes")

        out = asyncio.run(engine.nodes.commit_node({"message": msg, "conversation": conv}))
        assert "confirmed_incident" not in out
        assert out["reply"]
        assert conv.awaiting_confirmation is False
        assert stored_incidents(db_path) == []
