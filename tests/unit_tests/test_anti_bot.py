"""Tests for the honeypot, timing and math challenge checks."""

import pytest

from portfolio.models import AntiBotData
from portfolio.services.anti_bot import MIN_FORM_TIME_MS, AntiBotService

NOW_MS = 1_700_000_000_000


def _service() -> AntiBotService:
    return AntiBotService(clock=lambda: NOW_MS)


def _data(**overrides) -> AntiBotData:
    fields = {
        "subject": "",
        "phone": "",
        "formLoadTime": NOW_MS - 10_000,
        "mathAnswer": "7",
        "mathNum1": 3,
        "mathNum2": 4,
    }
    fields.update(overrides)
    return AntiBotData.model_validate(fields)


def test_human_submission_passes():
    result = _service().validate(_data())
    assert result.is_valid
    assert result.reason is None


def test_filled_honeypot_is_rejected():
    result = _service().validate(_data(phone="+1 555 0100"))
    assert not result.is_valid
    assert result.reason == "Backup field detected"


def test_honeypot_checked_before_timing():
    result = _service().validate(_data(subject="buy now", formLoadTime=NOW_MS))
    assert result.reason == "Backup field detected"


def test_fast_submission_is_rejected():
    result = _service().validate(_data(formLoadTime=NOW_MS - MIN_FORM_TIME_MS + 1))
    assert result.reason == "Form submitted too quickly"


def test_exactly_minimum_time_passes():
    assert _service().validate(_data(formLoadTime=NOW_MS - MIN_FORM_TIME_MS)).is_valid


def test_wrong_math_answer():
    assert _service().validate(_data(mathAnswer="8")).reason == "Incorrect math answer"


def test_non_numeric_math_answer():
    assert _service().validate(_data(mathAnswer="seven")).reason == "Incorrect math answer"


@pytest.mark.parametrize("answer", ["0_7", "٧", "７", "+7", "7.0", "7abc", ""])
def test_math_answer_must_be_ascii_digits(answer):
    assert _service().validate(_data(mathAnswer=answer)).reason == "Incorrect math answer"


def test_math_answer_with_whitespace():
    assert _service().validate(_data(mathAnswer=" 7 ")).is_valid


def test_generated_challenge_is_consistent():
    for _ in range(50):
        challenge = AntiBotService.generate_math_challenge()
        assert 1 <= challenge.num1 <= 9
        assert 1 <= challenge.num2 <= 9
        assert challenge.correct_answer == challenge.num1 + challenge.num2
        assert challenge.question == f"What is {challenge.num1} + {challenge.num2}?"


def test_correct_answer_is_not_serialized():
    challenge = AntiBotService.generate_math_challenge()
    assert "correctAnswer" not in challenge.model_dump(by_alias=True)
    assert "correct_answer" not in challenge.model_dump()


def test_form_initial_data():
    initial = _service().create_form_initial_data()
    assert initial.form_load_time == NOW_MS
    assert initial.subject == ""
    assert initial.phone == ""
    assert initial.question == f"What is {initial.math_num1} + {initial.math_num2}?"
