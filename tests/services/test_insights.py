"""
Tests for the insights payload builder and reply alignment.
"""
import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.core.errors import BadUpstreamResponse, ModelQuotaExceeded
from app.schemas.filters import InsightsQuery
from app.services.insights import (
    InsightsRun,
    InsightsState,
    align_actions,
    build_payload,
    parse_reply,
    response_entry,
)
from tests.fakes import FakeModel


def themes(n):
    return [{"theme": f"theme {i}", "sentiment": "negative", "mentions": i} for i in range(n)]


def actions(n):
    return [{"action": f"fix {i}", "owner": "kitchen", "priority": i + 1} for i in range(n)]


def response_row():
    q_nps = SimpleNamespace(code="recommend", prompt="Would you recommend us?", question_type="scale_0_10")
    q_text = SimpleNamespace(code="improvement", prompt="What could be better?", question_type="free_text")
    return SimpleNamespace(
        id="r1",
        location="brickell",
        created_at=datetime(2025, 7, 2, 18, 0, tzinfo=timezone.utc),
        nps_bucket="promoter",
        sentiment_score=0.7,
        customer_name="Ana Lopez",
        customer_email="ana@example.com",
        answers=[
            SimpleNamespace(value_text="Faster drinks", value_number=None, question=q_text),
            SimpleNamespace(value_text=None, value_number=9, question=q_nps),
        ],
    )


class TestPayload:
    def test_shape_and_allowlist(self):
        q = InsightsQuery.model_validate({"from": "2025-07-01", "to": "2025-07-31"})
        payload = build_payload([response_row()], q)

        assert payload["mode"] == "period_analysis"
        assert payload["window"] == {
            "start": "2025-07-01T00:00:00+00:00",
            "end": "2025-07-31T23:59:59.999999+00:00",
            "timezone": "UTC",
        }
        assert payload["config"]["allow_personal_data"] is False
        assert payload["config"]["max_responses"] == 400

        entry = payload["data"]["responses"][0]
        assert set(entry) == {"id", "location", "created_at", "nps_bucket", "sentiment_score", "nps", "answers"}
        assert entry["nps"] == 9
        assert entry["answers"][0] == {
            "question_code": "improvement",
            "question_prompt": "What could be better?",
            "question_type": "free_text",
            "value_text": "Faster drinks",
            "value_number": None,
        }
        text = json.dumps(payload)
        assert "ana@example.com" not in text
        assert "Ana Lopez" not in text

    def test_nps_ignores_choice_index(self):
        row = response_row()
        q_choice = SimpleNamespace(code="food_quality", prompt="Food?", question_type="single_choice")
        row.answers.insert(0, SimpleNamespace(value_text=None, value_number=2, question=q_choice))

        assert response_entry(row)["nps"] == 9

    def test_respects_limit(self):
        q = InsightsQuery(limit=50)
        payload = build_payload([response_row()] * 60, q)
        assert len(payload["data"]["responses"]) == 50


class TestParseReply:
    def test_valid_json(self):
        assert parse_reply('{"patterns": {}}') == {"patterns": {}}

    def test_repairs_trailing_comma(self):
        assert parse_reply('{"summary": {"headline": "ok",},}') == {"summary": {"headline": "ok"}}

    def test_unrepairable_raises(self):
        with pytest.raises(BadUpstreamResponse):
            parse_reply("I'm sorry, I can't help with that")


class TestAlignment:
    def test_aligned_reply_needs_no_backfill(self):
        model = FakeModel()
        out = align_actions({"patterns": {"top_themes": themes(3), "recommended_actions": actions(3)}}, model)
        assert model.calls == []
        assert out["patterns"]["recommended_actions"] == actions(3)

    def test_five_themes_three_actions_backfills_once(self):
        model = FakeModel([json.dumps({"recommended_actions": actions(5)})])
        parsed = {"patterns": {"top_themes": themes(5), "recommended_actions": actions(3)}}

        out = align_actions(parsed, model)

        assert len(model.calls) == 1
        sent = json.loads(model.calls[0]["user"])
        assert sent["themes"] == themes(5)
        assert out["patterns"]["recommended_actions"] == actions(5)

    def test_backfill_failure_keeps_partial_actions(self):
        model = FakeModel([ModelQuotaExceeded()])
        parsed = {"patterns": {"top_themes": themes(5), "recommended_actions": actions(3)}}

        out = align_actions(parsed, model)

        assert len(model.calls) == 1
        assert out["patterns"]["recommended_actions"] == actions(3)
        assert len(out["patterns"]["top_themes"]) == 5

    def test_partial_backfill_is_spliced_by_index(self):
        filled = actions(5)
        filled[4] = {"owner": "bar"}  # no action text
        model = FakeModel([json.dumps({"recommended_actions": filled})])
        parsed = {"patterns": {"top_themes": themes(5), "recommended_actions": [{"owner": "x"}] + actions(3)[1:]}}

        out = align_actions(parsed, model)

        assert [a["action"] for a in out["patterns"]["recommended_actions"]] == ["fix 0", "fix 1", "fix 2", "fix 3"]

    def test_themes_capped_at_seven(self):
        model = FakeModel()
        parsed = {"patterns": {"top_themes": themes(9), "recommended_actions": actions(7)}}

        out = align_actions(parsed, model)

        assert len(out["patterns"]["top_themes"]) == 7
        assert len(out["patterns"]["recommended_actions"]) == 7
        assert model.calls == []

    def test_missing_patterns_is_tolerated(self):
        out = align_actions({"summary": {"headline": "quiet week"}}, FakeModel())
        assert out["patterns"] == {"top_themes": [], "recommended_actions": []}


class TestRunStates:
    def test_happy_path(self):
        run = InsightsRun()
        for state in [
            InsightsState.fetching,
            InsightsState.payload_built,
            InsightsState.awaiting_model,
            InsightsState.parsing,
            InsightsState.backfilling,
            InsightsState.aligned,
            InsightsState.done,
        ]:
            run.advance(state)
        assert run.state is InsightsState.done

    def test_illegal_transition(self):
        run = InsightsRun()
        run.advance(InsightsState.fetching)
        with pytest.raises(RuntimeError):
            run.advance(InsightsState.done)
