"""
AI insights for a window of survey responses.

A run fetches a bounded sample of responses, strips them to an explicit field
allowlist (no customer contact details), asks the chat model for a thematic
summary and then makes sure every theme has a recommended action, asking the
model once more when the first reply left gaps.
"""
import json
import logging
from enum import Enum
from typing import Any

import json_repair
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import BadUpstreamResponse, UpstreamModelError, UpstreamStoreError
from app.schemas.filters import InsightsQuery
from app.services import answer_store
from app.services.llm import ChatModel
from app.services.prompts import BACKFILL_INSTRUCTIONS, BACKFILL_SYSTEM, INSIGHTS_SYSTEM
from app.services.statistics import nps_value

logger = logging.getLogger(__name__)

MAX_THEMES = 7
MIN_RESPONSES_FOR_PATTERNS = 10


class InsightsState(str, Enum):
    fetching = "fetching"
    payload_built = "payload_built"
    awaiting_model = "awaiting_model"
    parsing = "parsing"
    backfilling = "backfilling"
    aligned = "aligned"
    done = "done"
    fetch_failed = "fetch_failed"
    model_unavailable = "model_unavailable"
    parse_failed = "parse_failed"


_TRANSITIONS = {
    None: {InsightsState.fetching},
    InsightsState.fetching: {InsightsState.payload_built, InsightsState.fetch_failed},
    InsightsState.payload_built: {InsightsState.awaiting_model},
    InsightsState.awaiting_model: {
        InsightsState.parsing,
        InsightsState.model_unavailable,
        InsightsState.parse_failed,
    },
    InsightsState.parsing: {InsightsState.aligned, InsightsState.backfilling, InsightsState.parse_failed},
    InsightsState.backfilling: {InsightsState.aligned},
    InsightsState.aligned: {InsightsState.done},
}


class InsightsRun:
    def __init__(self):
        self.state: InsightsState | None = None
        self.history: list[InsightsState] = []

    def advance(self, new_state: InsightsState) -> None:
        if new_state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"illegal insights transition {self.state} -> {new_state}")
        logger.info("insights run: %s -> %s", self.state.value if self.state else "start", new_state.value)
        self.state = new_state
        self.history.append(new_state)


# --- payload ---------------------------------------------------------------

def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def response_entry(row: Any) -> dict:
    """One response restricted to the fields the model may see."""
    answers = list(row.answers or [])
    scale = [a.value_number for a in answers if a.question and a.question.question_type == "scale_0_10"]
    return {
        "id": str(row.id),
        "location": row.location or "unknown",
        "created_at": _iso(row.created_at),
        "nps_bucket": row.nps_bucket,
        "sentiment_score": row.sentiment_score,
        "nps": nps_value(scale),
        "answers": [
            {
                "question_code": a.question.code if a.question else None,
                "question_prompt": a.question.prompt if a.question else None,
                "question_type": a.question.question_type if a.question else None,
                "value_text": a.value_text,
                "value_number": a.value_number,
            }
            for a in answers
        ],
    }


def build_payload(rows: list[Any], q: InsightsQuery) -> dict:
    start, end = _iso(q.from_), _iso(q.to)
    return {
        "mode": "period_analysis",
        "window": {"start": start, "end": end, "timezone": "UTC"},
        "config": {
            "max_responses": q.limit,
            "min_responses_for_patterns": MIN_RESPONSES_FOR_PATTERNS,
            "baseline_window": None,
            "allow_personal_data": False,
        },
        "data": {"responses": [response_entry(r) for r in rows[: q.limit]]},
    }


# --- reply handling --------------------------------------------------------

def parse_reply(content: str) -> dict:
    try:
        parsed = json.loads(content)
    except ValueError:
        parsed = json_repair.loads(content)
        if isinstance(parsed, dict) and parsed:
            logger.warning("insights reply recovered via json_repair")
    if not isinstance(parsed, dict) or not parsed:
        logger.error("insights reply unparseable: %s", content[:4000])
        raise BadUpstreamResponse(details=content[:2000])
    return parsed


def _valid_action(item: Any) -> bool:
    return isinstance(item, dict) and bool(item.get("action"))


def needs_backfill(themes: list, actions: list) -> bool:
    return bool(themes) and (len(themes) != len(actions) or not all(_valid_action(a) for a in actions))


def backfill_actions(model: ChatModel, themes: list, window: dict) -> list:
    user = json.dumps({"window": window, "themes": themes, "instructions": BACKFILL_INSTRUCTIONS})
    reply = model.complete(BACKFILL_SYSTEM, user, max_tokens=600)
    logger.info("insights actions backfill reply (%d chars)", len(reply.content))
    parsed = parse_reply(reply.content)
    actions = parsed.get("recommended_actions")
    return actions if isinstance(actions, list) else []


def align_actions(parsed: dict, model: ChatModel, run: InsightsRun | None = None) -> dict:
    """
    Cap themes and pair each with its action by index.

    One corrective model call is made when actions are missing, misaligned or
    lack an ``action`` field. Nothing is invented locally: themes whose action
    could not be obtained simply drop out of ``recommended_actions``.
    """
    patterns = parsed.get("patterns") if isinstance(parsed.get("patterns"), dict) else {}
    themes = patterns.get("top_themes")
    themes = themes[:MAX_THEMES] if isinstance(themes, list) else []
    actions = patterns.get("recommended_actions")
    actions = actions if isinstance(actions, list) else []

    if needs_backfill(themes, actions):
        logger.info("insights actions backfill needed: themes=%d actions=%d", len(themes), len(actions))
        if run:
            run.advance(InsightsState.backfilling)
        window = parsed.get("window") if isinstance(parsed.get("window"), dict) else {}
        try:
            backfilled = backfill_actions(model, themes, window or {"start": None, "end": None, "timezone": "UTC"})
        except UpstreamModelError as e:
            logger.error("insights actions backfill failed: %s", e.message)
            backfilled = []
        spliced = list(actions)
        for idx, item in enumerate(backfilled[: len(themes)]):
            if not _valid_action(item):
                continue
            if idx < len(spliced):
                spliced[idx] = item
            else:
                spliced.append(item)
        actions = spliced

    aligned = [actions[idx] for idx in range(len(themes)) if idx < len(actions) and _valid_action(actions[idx])]
    if run:
        run.advance(InsightsState.aligned)
    return {**parsed, "patterns": {**patterns, "top_themes": themes, "recommended_actions": aligned}}


def generate_insights(db: Session, q: InsightsQuery, model: ChatModel) -> dict:
    run = InsightsRun()

    run.advance(InsightsState.fetching)
    try:
        rows = answer_store.fetch_insight_responses(db, q)
    except UpstreamStoreError:
        run.advance(InsightsState.fetch_failed)
        raise

    payload = build_payload(rows, q)
    run.advance(InsightsState.payload_built)
    body = json.dumps(payload)
    logger.info(
        "insights payload built: responses=%d bytes=%d window=%s..%s",
        len(payload["data"]["responses"]),
        len(body.encode("utf-8")),
        payload["window"]["start"],
        payload["window"]["end"],
    )

    run.advance(InsightsState.awaiting_model)
    try:
        reply = model.complete(INSIGHTS_SYSTEM, body, max_tokens=settings.insights_max_tokens)
    except BadUpstreamResponse:
        run.advance(InsightsState.parse_failed)
        raise
    except UpstreamModelError:
        run.advance(InsightsState.model_unavailable)
        raise

    run.advance(InsightsState.parsing)
    try:
        parsed = parse_reply(reply.content)
    except BadUpstreamResponse:
        run.advance(InsightsState.parse_failed)
        raise

    insights = align_actions(parsed, model, run)
    run.advance(InsightsState.done)
    return {"insights": insights, "meta": {"count": len(rows), "model": reply.model, "state": run.state.value}}
