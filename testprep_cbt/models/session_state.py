"""
models/session_state.py

시험 진행 상태를 담는 OMR 카드 모델.
Pydantic BaseModel 기반: 직렬화/역직렬화 및 타입 안전성 확보.
상태 전이 로직은 services/attempt_service.py 에 있다. UI 코드 없음.
"""

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from testprep_cbt.models.exam_model import ExamDocument, FlattenedQuestion


class ExamStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class QuestionStatus(str, Enum):
    """네비게이션 패널 표시용 문제 상태."""

    NOT_VISITED = "not_visited"
    ANSWERED = "answered"
    NOT_ANSWERED = "not_answered"
    MARKED_FOR_REVIEW = "marked_for_review"
    ANSWERED_AND_MARKED = "answered_and_marked"


class EmptyAnswerPolicy(str, Enum):
    """
    빈 선택(보기 0개, 값 없음)을 어떻게 저장할지에 대한 정책.

    UNATTEMPTED: 'none' 으로 저장 → 미응답으로 표시/채점
    ANSWERED:    받은 그대로 저장 → 응답으로 표시, 오답으로 채점
    """

    UNATTEMPTED = "unattempted"
    ANSWERED = "answered"


# ── 사용자 답안 (유형별 variant) ─────────────────────────────────────────────

class NoAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


class SingleChoiceAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["mcq_single"] = "mcq_single"
    selected_index: Optional[int] = None


class MultiChoiceAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["mcq_multi"] = "mcq_multi"
    selected_indices: List[int] = Field(default_factory=list)


class NumericalAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["nat"] = "nat"
    value: Optional[float] = None


UserAnswer = Annotated[
    Union[NoAnswer, SingleChoiceAnswer, MultiChoiceAnswer, NumericalAnswer],
    Field(discriminator="type"),
]


class QuestionAttemptState(BaseModel):
    """
    문제 하나의 응시 기록.
    frozen. 변경 시 model_copy(update=...) 로 레코드 전체를 교체한다.
    """

    model_config = ConfigDict(frozen=True)

    question_id: str
    answer: UserAnswer = Field(default_factory=NoAnswer)
    time_spent_seconds: int = Field(default=0, ge=0)
    marked_for_review: bool = False
    visited: bool = False

    @property
    def is_answered(self) -> bool:
        return self.answer.type != "none"


class ExamState(BaseModel):
    """
    사용자의 시험 세션 전체 상태를 표현하는 모델.

    Attributes:
        paper:                  로드된 시험지 (없으면 None).
        questions:              평탄화된 문제 리스트 (전역 순서).
        status:                 not_started → in_progress → submitted (역방향 전이 없음).
        current_quest_index:    현재 보고 있는 문제의 인덱스 (0-based).
        remaining_time_seconds: 남은 시간 (초).
        question_states:        {question_id: QuestionAttemptState}
        last_view_start:        현재 문제를 보기 시작한 시각 (Unix timestamp, 0 이면 미설정).
        focus_lost_count:       탭 전환/포커스 이탈 횟수 (기록만, 채점 무관).
        fullscreen_exit_count:  전체화면 해제 횟수 (기록만, 채점 무관).
        empty_answer_policy:    빈 선택 저장 정책.
    """

    paper: Optional[ExamDocument] = None
    questions: List[FlattenedQuestion] = Field(default_factory=list)
    status: ExamStatus = ExamStatus.NOT_STARTED
    current_quest_index: int = Field(
        default=0,
        ge=0,
        description="현재 풀고 있는 문제 인덱스 (0-based)"
    )
    remaining_time_seconds: int = Field(default=0, ge=0)
    question_states: Dict[str, QuestionAttemptState] = Field(default_factory=dict)
    last_view_start: float = Field(
        default=0.0,
        description="현재 문제 열람 시작 시각 (Unix timestamp, time.time() 기준)"
    )
    focus_lost_count: int = 0
    fullscreen_exit_count: int = 0
    empty_answer_policy: EmptyAnswerPolicy = EmptyAnswerPolicy.UNATTEMPTED

    @property
    def is_submitted(self) -> bool:
        return self.status == ExamStatus.SUBMITTED
