"""
services/formatting.py

답안/타이머 표시용 문자열 변환.
"""

from testprep_cbt.models.exam_model import (
    CorrectAnswer,
    MultiChoiceKey,
    NumericalKey,
    SingleChoiceKey,
)
from testprep_cbt.models.session_state import (
    MultiChoiceAnswer,
    NumericalAnswer,
    SingleChoiceAnswer,
    UserAnswer,
)

NOT_ATTEMPTED = "Not Attempted"


def option_label(index: int) -> str:
    """0-based 보기 인덱스 → 알파벳 (0 → 'A')."""
    return chr(ord("A") + index)


def _format_number(value: float) -> str:
    # 5.0 → "5", 4.98 → "4.98"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _letters(indices) -> str:
    return ", ".join(sorted(option_label(i) for i in indices))


def format_user_answer(answer: UserAnswer) -> str:
    if isinstance(answer, SingleChoiceAnswer):
        if answer.selected_index is None:
            return NOT_ATTEMPTED
        return f"Option {option_label(answer.selected_index)}"

    if isinstance(answer, MultiChoiceAnswer):
        if not answer.selected_indices:
            return NOT_ATTEMPTED
        return _letters(answer.selected_indices)

    if isinstance(answer, NumericalAnswer):
        if answer.value is None:
            return NOT_ATTEMPTED
        return _format_number(answer.value)

    return NOT_ATTEMPTED


def format_correct_answer(correct: CorrectAnswer) -> str:
    if isinstance(correct, SingleChoiceKey):
        return f"Option {option_label(correct.correct_option_index)}"

    if isinstance(correct, MultiChoiceKey):
        return _letters(correct.correct_option_indices)

    if isinstance(correct, NumericalKey):
        return " or ".join(
            _format_number(r.min) if r.min == r.max
            else f"{_format_number(r.min)} to {_format_number(r.max)}"
            for r in correct.accepted_ranges
        )

    return "Unknown"


def format_time(total_seconds: int, show_hours: bool = True) -> str:
    """
    초 → 'HH:MM:SS' (시간이 0 이면 'MM:SS').

    show_hours=False 이면 항상 'MM:SS' (분이 60 을 넘지 않도록 시간 부분은 버린다).
    """
    total_seconds = max(0, int(total_seconds))
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)

    if show_hours and hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
