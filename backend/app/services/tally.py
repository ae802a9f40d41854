from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from app.services.statistics import percentages

FREE_TEXT_LABEL = "Text responses"
SCALE_LABELS = [str(n) for n in range(11)]


@dataclass
class Tally:
    question_type: str
    counts: dict[str, int]
    stray: int = 0
    texts: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def options(self) -> list[dict]:
        """(label, count, percentage) in declared option order."""
        _, pct = percentages(self.counts)
        return [{"label": label, "count": count, "percentage": pct[label]} for label, count in self.counts.items()]


def resolve_choice(labels: list[str], value_text: str | None, value_number: float | None) -> str | None:
    """Map a stored single_choice answer onto one of ``labels``."""
    if value_text is not None and value_text.strip():
        text = value_text.strip()
        return text if text in labels else None
    if value_number is not None and float(value_number).is_integer():
        idx = int(value_number) - 1
        if 0 <= idx < len(labels):
            return labels[idx]
    return None


def resolve_scale(value_number: float | None) -> str | None:
    if value_number is None or not float(value_number).is_integer():
        return None
    value = int(value_number)
    return str(value) if 0 <= value <= 10 else None


def tally_answers(question: Any, answers: Iterable[Any]) -> Tally:
    """
    Count answers for one question.

    ``question`` needs ``question_type`` and ``labels``; answers need
    ``value_text`` and ``value_number``. Values that match no declared option
    are counted in ``stray`` and kept out of ``counts``.
    """
    qtype = question.question_type
    if qtype == "single_choice":
        labels = list(question.labels)
        tally = Tally(qtype, {label: 0 for label in labels})
        for answer in answers:
            label = resolve_choice(labels, answer.value_text, answer.value_number)
            if label is None:
                tally.stray += 1
            else:
                tally.counts[label] += 1
        return tally

    if qtype == "scale_0_10":
        tally = Tally(qtype, {label: 0 for label in SCALE_LABELS})
        for answer in answers:
            label = resolve_scale(answer.value_number)
            if label is None:
                tally.stray += 1
            else:
                tally.counts[label] += 1
        return tally

    tally = Tally(qtype, {FREE_TEXT_LABEL: 0})
    for answer in answers:
        text = (answer.value_text or "").strip()
        if text:
            tally.counts[FREE_TEXT_LABEL] += 1
            tally.texts.append(text)
    return tally
