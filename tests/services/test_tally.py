from types import SimpleNamespace

from app.services.tally import FREE_TEXT_LABEL, tally_answers


def question(question_type, labels=None):
    return SimpleNamespace(question_type=question_type, labels=labels or [])


def answer(text=None, number=None):
    return SimpleNamespace(value_text=text, value_number=number)


LABELS = ["Excellent", "Good", "Fair", "Poor"]


def test_single_choice_counts_in_declared_order():
    answers = [answer("Excellent")] * 6 + [answer("Good")] * 4
    tally = tally_answers(question("single_choice", LABELS), answers)

    assert list(tally.counts) == LABELS
    assert tally.total == 10
    assert tally.options() == [
        {"label": "Excellent", "count": 6, "percentage": 60},
        {"label": "Good", "count": 4, "percentage": 40},
        {"label": "Fair", "count": 0, "percentage": 0},
        {"label": "Poor", "count": 0, "percentage": 0},
    ]


def test_single_choice_stray_values_do_not_inflate_total():
    answers = [answer("Good"), answer("Amazing"), answer(None, None), answer("Good")]
    tally = tally_answers(question("single_choice", LABELS), answers)

    assert tally.total == 2
    assert tally.stray == 2
    assert tally.options()[1]["percentage"] == 100


def test_single_choice_resolves_one_based_index():
    answers = [answer(None, 1), answer(None, 4), answer(None, 5), answer(None, 0)]
    tally = tally_answers(question("single_choice", LABELS), answers)

    assert tally.counts["Excellent"] == 1
    assert tally.counts["Poor"] == 1
    assert tally.stray == 2


def test_scale_drops_out_of_range_values():
    answers = [answer(number=n) for n in [9, 9, 10, 7, 3, 11, -1, 7.5]] + [answer("ten")]
    tally = tally_answers(question("scale_0_10"), answers)

    assert list(tally.counts) == [str(n) for n in range(11)]
    assert tally.counts["9"] == 2
    assert tally.counts["0"] == 0
    assert tally.total == 5
    assert tally.stray == 4


def test_free_text_counts_non_blank():
    answers = [answer("Great tacos "), answer("   "), answer(None), answer("Slow service")]
    tally = tally_answers(question("free_text"), answers)

    assert tally.counts == {FREE_TEXT_LABEL: 2}
    assert tally.texts == ["Great tacos", "Slow service"]


def test_tally_is_deterministic():
    answers = [answer("Fair"), answer("Excellent"), answer("Fair")]
    q = question("single_choice", LABELS)
    assert tally_answers(q, answers).options() == tally_answers(q, answers).options()
