"""
services/attempt_service.py

시험 응시 상태 머신.
ExamState 를 인자로 받아 제자리에서 갱신하는 순수 Python 함수 모음: UI 코드, 전역 상태 없음.

상태 전이: not_started → in_progress → submitted (역방향 없음)

규칙:
- 현재 상태와 맞지 않는 호출(제출 후 답안 수정, 범위 밖 이동 등)은 예외 없이 무시하고 False 반환
- 문제별 레코드(QuestionAttemptState)는 항상 통째로 교체
- 시각은 now 인자로 주입 가능 (기본값 time.time())
"""

import logging
import math
import time
from typing import Dict, Optional

from testprep_cbt.models.exam_model import ExamDocument, FlattenedQuestion, flatten_questions
from testprep_cbt.models.session_state import (
    EmptyAnswerPolicy,
    ExamState,
    ExamStatus,
    MultiChoiceAnswer,
    NoAnswer,
    NumericalAnswer,
    QuestionAttemptState,
    QuestionStatus,
    SingleChoiceAnswer,
    UserAnswer,
)

logger = logging.getLogger(__name__)


def _now(now: Optional[float]) -> float:
    return time.time() if now is None else now


def _replace(state: ExamState, question_id: str, **changes) -> None:
    """문제 레코드를 새 레코드로 교체한다."""
    record = state.question_states[question_id]
    state.question_states[question_id] = record.model_copy(update=changes)


def _is_in_progress(state: ExamState, action: str) -> bool:
    if state.status != ExamStatus.IN_PROGRESS:
        logger.debug(f"{action} 무시 (현재 상태: {state.status.value})")
        return False
    return True


# ══════════════════════════════════════════════════════════════════════════════
# 생명주기
# ══════════════════════════════════════════════════════════════════════════════

def load_exam(
    paper: ExamDocument,
    empty_answer_policy: EmptyAnswerPolicy = EmptyAnswerPolicy.UNATTEMPTED,
) -> ExamState:
    """
    시험지로 새 응시 상태를 만든다.

    이전 상태와 병합하지 않는다. 호출자는 반환값으로 기존 상태를 통째로 교체한다.

    Args:
        paper:               시험지 문서.
        empty_answer_policy: 빈 선택 저장 정책.

    Returns:
        status=not_started, 모든 문제 미방문/미응답, 남은 시간 = duration_minutes * 60
    """
    questions = flatten_questions(paper)
    return ExamState(
        paper=paper,
        questions=questions,
        status=ExamStatus.NOT_STARTED,
        current_quest_index=0,
        remaining_time_seconds=paper.duration_minutes * 60,
        question_states={
            q.question_id: QuestionAttemptState(question_id=q.question_id)
            for q in questions
        },
        empty_answer_policy=empty_answer_policy,
    )


def start_exam(state: ExamState, now: Optional[float] = None) -> bool:
    """시험 시작. 첫 문제를 방문 처리하고 열람 시작 시각을 기록한다."""
    if state.status != ExamStatus.NOT_STARTED or not state.questions:
        logger.debug("start_exam 무시: 이미 시작되었거나 문제가 없습니다.")
        return False

    first_id = state.questions[0].question_id
    _replace(state, first_id, visited=True)
    state.current_quest_index = 0
    state.status = ExamStatus.IN_PROGRESS
    state.last_view_start = _now(now)
    logger.info(f"시험 시작: {state.paper.paper_id if state.paper else '-'} ({len(state.questions)}문항)")
    return True


def submit_exam(state: ExamState, now: Optional[float] = None) -> bool:
    """최종 제출. 현재 문제의 열람 시간을 마지막으로 반영한 뒤 submitted 로 전이한다."""
    if not _is_in_progress(state, "submit_exam"):
        return False

    commit_time_spent(state, now)
    state.status = ExamStatus.SUBMITTED
    logger.info(f"시험 제출: {state.paper.paper_id if state.paper else '-'}")
    return True


# ══════════════════════════════════════════════════════════════════════════════
# 시간 기록
# ══════════════════════════════════════════════════════════════════════════════

def commit_time_spent(state: ExamState, now: Optional[float] = None) -> int:
    """
    마지막 열람 시작 시각부터 지금까지의 경과 시간을 현재 문제에 더한다.

    경과 시간은 정수 초로 내림하고, 기준 시각은 now 로 재설정한다.
    연달아 두 번 호출하면 두 번째 호출은 0초를 더한다.

    Returns:
        이번 호출로 더해진 초.
    """
    if state.status != ExamStatus.IN_PROGRESS or not state.questions:
        return 0
    if state.last_view_start <= 0:
        return 0

    current = _now(now)
    delta = max(0, math.floor(current - state.last_view_start))
    question_id = state.questions[state.current_quest_index].question_id
    if delta:
        record = state.question_states[question_id]
        _replace(state, question_id, time_spent_seconds=record.time_spent_seconds + delta)
    state.last_view_start = current
    return delta


def update_remaining_time(state: ExamState, seconds: int, now: Optional[float] = None) -> bool:
    """
    타이머 틱. 남은 시간을 min(현재 남은 시간, max(0, seconds)) 로 설정한다.
    남은 시간은 늘어나지 않으며, 0 이 되면 이 함수 안에서 곧바로 자동 제출한다.
    """
    if not _is_in_progress(state, "update_remaining_time"):
        return False

    state.remaining_time_seconds = min(state.remaining_time_seconds, max(0, int(seconds)))
    if state.remaining_time_seconds == 0:
        logger.info("시험 시간 종료, 자동 제출합니다.")
        submit_exam(state, now)
    return True


# ══════════════════════════════════════════════════════════════════════════════
# 이동
# ══════════════════════════════════════════════════════════════════════════════

def go_to_question(state: ExamState, index: int, now: Optional[float] = None) -> bool:
    """index 번 문제로 이동. 이동 전 현재 문제의 열람 시간을 반영한다."""
    if not _is_in_progress(state, "go_to_question"):
        return False
    if not (0 <= index < len(state.questions)):
        logger.debug(f"go_to_question 무시 (범위 밖 인덱스: {index})")
        return False

    current = _now(now)
    commit_time_spent(state, current)

    _replace(state, state.questions[index].question_id, visited=True)
    state.current_quest_index = index
    state.last_view_start = current
    return True


def next_question(state: ExamState, now: Optional[float] = None) -> bool:
    if state.current_quest_index >= len(state.questions) - 1:
        return False
    return go_to_question(state, state.current_quest_index + 1, now)


def previous_question(state: ExamState, now: Optional[float] = None) -> bool:
    if state.current_quest_index <= 0:
        return False
    return go_to_question(state, state.current_quest_index - 1, now)


# ══════════════════════════════════════════════════════════════════════════════
# 답안 / 검토 표시
# ══════════════════════════════════════════════════════════════════════════════

def _find_question(state: ExamState, question_id: str) -> Optional[FlattenedQuestion]:
    for q in state.questions:
        if q.question_id == question_id:
            return q
    return None


def _normalize_answer(answer: UserAnswer, policy: EmptyAnswerPolicy) -> UserAnswer:
    """UNATTEMPTED 정책이면 빈 선택을 'none' 으로 바꾼다."""
    if policy != EmptyAnswerPolicy.UNATTEMPTED:
        return answer
    if isinstance(answer, SingleChoiceAnswer) and answer.selected_index is None:
        return NoAnswer()
    if isinstance(answer, MultiChoiceAnswer) and not answer.selected_indices:
        return NoAnswer()
    if isinstance(answer, NumericalAnswer) and answer.value is None:
        return NoAnswer()
    return answer


def set_answer(state: ExamState, question_id: str, answer: UserAnswer) -> bool:
    """
    답안 저장 (덮어쓰기). 방문/검토 표시/시간에는 영향 없음.

    문제 유형과 맞지 않는 답안 variant 는 저장하지 않는다.
    """
    if not _is_in_progress(state, "set_answer"):
        return False

    question = _find_question(state, question_id)
    if question is None:
        logger.debug(f"set_answer 무시 (없는 문제: {question_id})")
        return False
    if answer.type not in ("none", question.type.value):
        logger.warning(
            f"set_answer 무시: 문제 {question_id} 유형({question.type.value})과 "
            f"답안 유형({answer.type}) 불일치"
        )
        return False

    _replace(state, question_id, answer=_normalize_answer(answer, state.empty_answer_policy))
    return True


def clear_answer(state: ExamState, question_id: str) -> bool:
    if not _is_in_progress(state, "clear_answer"):
        return False
    if question_id not in state.question_states:
        return False
    _replace(state, question_id, answer=NoAnswer())
    return True


def toggle_mark_for_review(state: ExamState, question_id: str) -> bool:
    if not _is_in_progress(state, "toggle_mark_for_review"):
        return False
    record = state.question_states.get(question_id)
    if record is None:
        return False
    _replace(state, question_id, marked_for_review=not record.marked_for_review)
    return True


# ── 감독 이벤트 (기록만, 채점 무관) ────────────────────────────────────────

def record_focus_lost(state: ExamState) -> bool:
    if not _is_in_progress(state, "record_focus_lost"):
        return False
    state.focus_lost_count += 1
    return True


def record_fullscreen_exit(state: ExamState) -> bool:
    if not _is_in_progress(state, "record_fullscreen_exit"):
        return False
    state.fullscreen_exit_count += 1
    return True


# ══════════════════════════════════════════════════════════════════════════════
# 조회 (상태 변경 없음)
# ══════════════════════════════════════════════════════════════════════════════

def get_question_state(state: ExamState, question_id: str) -> Optional[QuestionAttemptState]:
    return state.question_states.get(question_id)


def get_current_question(state: ExamState) -> Optional[FlattenedQuestion]:
    if 0 <= state.current_quest_index < len(state.questions):
        return state.questions[state.current_quest_index]
    return None


def get_question_status(state: ExamState, question_id: str) -> QuestionStatus:
    """
    네비게이션 표시용 상태.

    | 응답 | 검토 | 방문 | → 상태               |
    |------|------|------|----------------------|
    | O    | O    | -    | answered_and_marked  |
    | X    | O    | -    | marked_for_review    |
    | O    | X    | -    | answered             |
    | X    | X    | O    | not_answered         |
    | X    | X    | X    | not_visited          |
    """
    record = state.question_states.get(question_id)
    if record is None:
        return QuestionStatus.NOT_VISITED

    if record.is_answered and record.marked_for_review:
        return QuestionStatus.ANSWERED_AND_MARKED
    if record.marked_for_review:
        return QuestionStatus.MARKED_FOR_REVIEW
    if record.is_answered:
        return QuestionStatus.ANSWERED
    if record.visited:
        return QuestionStatus.NOT_ANSWERED
    return QuestionStatus.NOT_VISITED


def get_total_answered(state: ExamState) -> int:
    return sum(1 for r in state.question_states.values() if r.is_answered)


def get_total_marked_for_review(state: ExamState) -> int:
    return sum(1 for r in state.question_states.values() if r.marked_for_review)


def get_status_summary(state: ExamState) -> Dict[str, int]:
    """상태별 문제 수 (범례 표시용). 모든 상태 키를 포함한다."""
    summary = {s.value: 0 for s in QuestionStatus}
    for q in state.questions:
        summary[get_question_status(state, q.question_id).value] += 1
    return summary


def answers_snapshot(state: ExamState) -> Dict[str, dict]:
    """체크포인트/원격 제출용 답안 맵. {question_id: 답안 dict}"""
    return {qid: r.answer.model_dump() for qid, r in state.question_states.items()}


def times_snapshot(state: ExamState) -> Dict[str, int]:
    """체크포인트/원격 제출용 시간 맵. {question_id: 누적 초}"""
    return {qid: r.time_spent_seconds for qid, r in state.question_states.items()}
