import pytest

from testprep_cbt.models.exam_model import AcceptedRange, MultiChoiceKey, NumericalKey, SingleChoiceKey
from testprep_cbt.models.session_state import (
    MultiChoiceAnswer,
    NoAnswer,
    NumericalAnswer,
    SingleChoiceAnswer,
)
from testprep_cbt.services.formatting import (
    format_correct_answer,
    format_time,
    format_user_answer,
    option_label,
)


def test_option_label():
    assert option_label(0) == "A"
    assert option_label(3) == "D"


@pytest.mark.parametrize("answer, expected", [
    (NoAnswer(), "Not Attempted"),
    (SingleChoiceAnswer(selected_index=None), "Not Attempted"),
    (SingleChoiceAnswer(selected_index=2), "Option C"),
    (MultiChoiceAnswer(selected_indices=[]), "Not Attempted"),
    (MultiChoiceAnswer(selected_indices=[3, 0, 2]), "A, C, D"),
    (NumericalAnswer(value=None), "Not Attempted"),
    (NumericalAnswer(value=5.0), "5"),
    (NumericalAnswer(value=4.98), "4.98"),
])
def test_format_user_answer(answer, expected):
    assert format_user_answer(answer) == expected


def test_format_correct_answer():
    assert format_correct_answer(SingleChoiceKey(correct_option_index=1)) == "Option B"
    assert format_correct_answer(MultiChoiceKey(correct_option_indices=[2, 0])) == "A, C"
    assert format_correct_answer(NumericalKey(accepted_ranges=[
        AcceptedRange(min=10, max=10),
        AcceptedRange(min=4.98, max=5.02),
    ])) == "10 or 4.98 to 5.02"


@pytest.mark.parametrize("seconds, expected", [
    (0, "00:00"),
    (59, "00:59"),
    (600, "10:00"),
    (3599, "59:59"),
    (3600, "01:00:00"),
    (10800, "03:00:00"),
    (3725, "01:02:05"),
])
def test_format_time(seconds, expected):
    assert format_time(seconds) == expected


def test_format_time_without_hours():
    assert format_time(3725, show_hours=False) == "02:05"
