import pytest
from sqlalchemy.exc import OperationalError

from tests.factories import add_question, add_response, utc


@pytest.fixture
def july(db, questions):
    food = questions["food"]
    add_response(db, created_at=utc(2025, 7, 31, 14, 0), nps_bucket="promoter", sentiment_score=0.8,
                 answers=[(food, "Good", None)])
    add_response(db, location="wynwood", created_at=utc(2025, 7, 2, 9, 0), sentiment_score=-0.5,
                 answers=[(food, "Poor", None)])
    add_response(db, created_at=utc(2025, 8, 1, 0, 30), nps_bucket="detractor", answers=[(food, "Good", None)])


def test_stats_requires_identity(client):
    assert client.get("/api/admin/stats").status_code == 401


def test_stats_rejects_unknown_admin(client):
    res = client.get("/api/admin/stats", headers={"X-Authenticated-User": "someone@example.com"})
    assert res.status_code == 403


def test_date_only_window_covers_last_day(admin, july):
    res = admin.get("/api/admin/stats", params={"from": "2025-07-01", "to": "2025-07-31"})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 2
    assert body["byDay"] == {"2025-07-02": 1, "2025-07-31": 1}
    assert body["byLocation"] == {"brickell": 1, "wynwood": 1}
    assert body["sentiment"] == {"negative": 1, "neutral": 0, "positive": 1, "missing": 0}
    assert body["nps"]["promoters"] == 1
    assert body["nps"]["missing"] == 1
    assert body["npsScore"] == 100


def test_missing_nps_bucket_filter(admin, july):
    body = admin.get("/api/admin/stats", params={"npsBucket": "missing"}).json()
    assert body["total"] == 1
    assert body["byLocation"] == {"wynwood": 1}


def test_sentiment_and_location_filters(admin, july):
    assert admin.get("/api/admin/stats", params={"sentiment": "negative"}).json()["total"] == 1
    assert admin.get("/api/admin/stats", params={"location": "brickell"}).json()["total"] == 2


def test_empty_window_is_zero_not_error(admin, july):
    body = admin.get("/api/admin/stats", params={"from": "2024-01-01", "to": "2024-01-31"}).json()
    assert body["total"] == 0
    assert body["byDay"] == {}
    assert body["npsScore"] is None


@pytest.mark.parametrize(
    "params, field",
    [
        ({"from": "yesterday"}, "from"),
        ({"from": "2025-08-01", "to": "2025-07-01"}, "to"),
        ({"location": "downtown"}, "location"),
        ({"npsBucket": "fan"}, "npsBucket"),
    ],
)
def test_bad_parameters_are_400(admin, params, field):
    res = admin.get("/api/admin/stats", params=params)
    assert res.status_code == 400
    assert field in res.json()["fields"]


def test_question_distribution(admin, db, questions):
    food = questions["food"]
    for value in ["Good", "Good", "Good", "Poor", "Poor"]:
        add_response(db, answers=[(food, value, None)])

    res = admin.get(f"/api/admin/stats/questions/{food.id}")
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 5
    assert body["questionType"] == "single_choice"
    assert [(o["label"], o["count"], o["percentage"]) for o in body["options"]] == [
        ("Excellent", 0, 0),
        ("Good", 3, 60),
        ("Fair", 0, 0),
        ("Poor", 2, 40),
    ]


def test_distribution_counts_index_answers_and_strays(admin, db):
    q = add_question(db, "ambience", "single_choice", ["Loved it", "Fine", "Disliked"])
    add_response(db, answers=[(q, None, 1)])
    add_response(db, answers=[(q, "Loved it", None)])
    add_response(db, answers=[(q, "Something else", None)])

    body = admin.get(f"/api/admin/stats/questions/{q.id}").json()
    assert body["total"] == 2
    assert body["stray"] == 1
    assert body["options"][0] == {"label": "Loved it", "count": 2, "percentage": 100}


def test_distribution_unknown_question_is_404(admin):
    res = admin.get("/api/admin/stats/questions/00000000-0000-0000-0000-000000000000")
    assert res.status_code == 404


def test_store_failure_is_500_not_empty_stats(admin, db, july, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT survey_responses", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "scalars", broken)

    res = admin.get("/api/admin/stats", params={"from": "2025-07-01", "to": "2025-07-31"})
    assert res.status_code == 500
    body = res.json()
    assert body["error"] == "Failed to load data"
    assert body["details"] == "database is locked"
    assert body["hint"] == "fetch responses"
    assert "total" not in body
