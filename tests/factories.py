from datetime import datetime, timezone

from app.models import Answer, Question, SurveyResponse


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def add_question(db, code, question_type, labels=None, sort_order=0, prompt=None):
    options = {"labels": labels} if labels is not None else {}
    q = Question(
        code=code,
        prompt=prompt or code.replace("_", " ").title(),
        question_type=question_type,
        options=options,
        sort_order=sort_order,
    )
    db.add(q)
    db.commit()
    return q


def add_response(db, location="brickell", created_at=None, answers=(), **fields):
    """``answers`` is a list of (question, value_text, value_number)."""
    created_at = created_at or utc(2025, 7, 15, 12, 0)
    r = SurveyResponse(location=location, created_at=created_at, **fields)
    r.answers = [
        Answer(question_id=q.id, value_text=text, value_number=number, created_at=created_at)
        for q, text, number in answers
    ]
    db.add(r)
    db.commit()
    return r
