from datetime import datetime, timezone

import pytest

from app.core.errors import ValidationError
from app.schemas.filters import AnswersQuery, InsightsQuery, NpsBucket, SentimentBucket, StatsQuery
from app.services.filters import parse_query


def test_date_only_bounds_cover_whole_days():
    q = parse_query(StatsQuery, {"from": "2025-07-01", "to": "2025-07-31", "location": "brickell"})

    assert q.from_ == datetime(2025, 7, 1, tzinfo=timezone.utc)
    assert q.to == datetime(2025, 7, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)
    assert q.location == "brickell"


def test_basic_date_format_is_date_only():
    q = parse_query(StatsQuery, {"from": "20250701", "to": "20250731"})

    assert q.from_ == datetime(2025, 7, 1, tzinfo=timezone.utc)
    assert q.to == datetime(2025, 7, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


def test_offsets_are_normalised_to_utc():
    q = parse_query(StatsQuery, {"from": "2025-07-01T20:00:00-04:00", "to": "2025-07-02T00:00:00Z"})
    assert q.from_ == datetime(2025, 7, 2, 0, 0, tzinfo=timezone.utc)
    assert q.to == datetime(2025, 7, 2, 0, 0, tzinfo=timezone.utc)


def test_enums_parse():
    q = parse_query(StatsQuery, {"sentiment": "negative", "npsBucket": "missing"})
    assert q.sentiment is SentimentBucket.negative
    assert q.nps_bucket is NpsBucket.missing


@pytest.mark.parametrize(
    "raw,field",
    [
        ({"from": "yesterday"}, "from"),
        ({"to": "2025-13-45"}, "to"),
        ({"location": "miami-beach"}, "location"),
        ({"sentiment": "angry"}, "sentiment"),
        ({"npsBucket": "fan"}, "npsBucket"),
        ({"questionId": "not-a-uuid"}, "questionId"),
    ],
)
def test_bad_values_name_the_field(raw, field):
    with pytest.raises(ValidationError) as exc:
        parse_query(StatsQuery, raw)
    assert field in exc.value.fields


def test_reversed_window_is_rejected():
    with pytest.raises(ValidationError) as exc:
        parse_query(StatsQuery, {"from": "2025-08-01", "to": "2025-07-01"})
    assert "to" in exc.value.fields


def test_answers_query_requires_question_and_bounds_page_size():
    with pytest.raises(ValidationError) as exc:
        parse_query(AnswersQuery, {})
    assert "questionId" in exc.value.fields

    qid = "7f0c7e1e-3c1a-4a53-9a53-8d3a86f3f0d1"
    with pytest.raises(ValidationError) as exc:
        parse_query(AnswersQuery, {"questionId": qid, "pageSize": "500"})
    assert "pageSize" in exc.value.fields

    q = parse_query(AnswersQuery, {"questionId": qid, "id": [qid]})
    assert q.page == 1 and q.page_size == 25
    assert [str(i) for i in q.ids] == [qid]


def test_insights_limit_bounds():
    assert parse_query(InsightsQuery, {}).limit == 400
    with pytest.raises(ValidationError):
        parse_query(InsightsQuery, {"limit": "801"})
