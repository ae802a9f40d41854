import csv
import io
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime
from typing import Any

ANSWER_COLUMNS = [
    "id",
    "question_code",
    "question_prompt",
    "answer",
    "sentiment",
    "location",
    "customer_name",
    "customer_email",
    "created_at",
]


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def iter_csv(rows: Iterable[Mapping[str, Any]], columns: Sequence[str] | None = None) -> Iterator[str]:
    """
    Yield CSV text one line at a time.

    The header comes from ``columns`` or the first row's keys. Fields holding
    a comma, quote or line break are quoted with quotes doubled; missing and
    ``None`` values are written as empty strings.
    """
    buf = io.StringIO()
    writer = None
    for row in rows:
        if writer is None:
            header = list(columns) if columns is not None else list(row.keys())
            writer = csv.DictWriter(buf, fieldnames=header, extrasaction="ignore", lineterminator="\n")
            writer.writeheader()
        writer.writerow({key: _cell(row.get(key)) for key in writer.fieldnames})
        yield _drain(buf)

    if writer is None and columns is not None:
        csv.writer(buf, lineterminator="\n").writerow(columns)
        yield _drain(buf)


def _drain(buf: io.StringIO) -> str:
    text = buf.getvalue()
    buf.seek(0)
    buf.truncate(0)
    return text


def to_csv(rows: Iterable[Mapping[str, Any]], columns: Sequence[str] | None = None) -> str:
    return "".join(iter_csv(rows, columns))


def answer_export_row(answer: Any) -> dict:
    """Flatten an answer with its question and response into the export columns."""
    question = answer.question
    response = answer.response
    value = answer.value_text if answer.value_text is not None else answer.value_number
    return {
        "id": answer.id,
        "question_code": question.code if question else None,
        "question_prompt": question.prompt if question else None,
        "answer": value,
        "sentiment": response.sentiment_score if response else None,
        "location": response.location if response else None,
        "customer_name": response.customer_name if response else None,
        "customer_email": response.customer_email if response else None,
        "created_at": response.created_at if response else answer.created_at,
    }
