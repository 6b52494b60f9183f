"""
models/exam_model.py

시험지(ExamDocument) 모델.
외부에서 공급되는 불변 문서 (섹션, 문제, 배점, 정답).
Pydantic v2, frozen 모델. UI 코드 없음.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuestionType(str, Enum):
    MCQ_SINGLE = "mcq_single"
    MCQ_MULTI = "mcq_multi"
    NAT = "nat"


class PaperType(str, Enum):
    PYQ = "PYQ"
    MOCK = "Mock"


# ── 정답 (문제 유형별 variant) ───────────────────────────────────────────────

class SingleChoiceKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["mcq_single"] = "mcq_single"
    correct_option_index: int = Field(..., ge=0)


class MultiChoiceKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["mcq_multi"] = "mcq_multi"
    correct_option_indices: List[int] = Field(default_factory=list)


class AcceptedRange(BaseModel):
    """수치형 정답 허용 범위 (양끝 포함). min == max 이면 정확히 일치해야 한다."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float


class NumericalKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["nat"] = "nat"
    accepted_ranges: List[AcceptedRange] = Field(default_factory=list)


CorrectAnswer = Annotated[
    Union[SingleChoiceKey, MultiChoiceKey, NumericalKey],
    Field(discriminator="type"),
]


class MarksScheme(BaseModel):
    """정답 / 오답 / 미응답 배점. marks_incorrect 는 보통 0 이하."""

    model_config = ConfigDict(frozen=True)

    marks_correct: float
    marks_incorrect: float = 0.0
    marks_unattempted: float = 0.0


# ── 문제 / 섹션 / 시험지 ─────────────────────────────────────────────────────

class Question(BaseModel):
    """
    단일 문제 모델

    question_id 의 문서 내 유일성은 전제 조건이며 여기서 검사하지 않는다.
    """

    model_config = ConfigDict(frozen=True)

    question_id: str = Field(..., min_length=1, description="문제 고유 ID (문서 전체에서 유일)")
    index: Optional[int] = Field(None, description="원본 시험지상의 문제 번호")
    type: QuestionType
    question_text: str = Field(..., description="발문")
    image: Optional[str] = Field(None, description="문제 이미지 경로 (없으면 None)")
    options: List[str] = Field(default_factory=list, description="보기 리스트 (수치형은 빈 리스트)")
    correct_answer: CorrectAnswer
    marks_scheme: MarksScheme
    topics: List[str] = Field(default_factory=list, description="토픽 태그 (분석용)")
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_answer_type(self) -> "Question":
        """정답 variant 의 유형은 문제 유형과 같아야 한다."""
        if self.correct_answer.type != self.type.value:
            raise ValueError(
                f"문제 {self.question_id}: 정답 유형({self.correct_answer.type})이 "
                f"문제 유형({self.type.value})과 다릅니다."
            )
        return self


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    section_id: str
    title: str
    order: int = 0
    questions: List[Question] = Field(default_factory=list)


class ExamDocument(BaseModel):
    """시험지 전체. 외부에서 검증된 상태로 공급되며 변경되지 않는다."""

    model_config = ConfigDict(frozen=True)

    exam_id: str = ""
    paper_id: str
    label: str
    year: int
    type: PaperType = PaperType.MOCK
    duration_minutes: int = Field(..., ge=0)
    total_marks: float = 0.0
    sections: List[Section] = Field(default_factory=list)

    @property
    def question_count(self) -> int:
        return sum(len(s.questions) for s in self.sections)


class FlattenedQuestion(Question):
    """
    시험 진행용 평탄화 문제.
    global_index 는 섹션 순서 → 섹션 내 순서로 매긴 0-based 전역 번호.
    """

    section_id: str
    section_title: str
    global_index: int = Field(..., ge=0)


def flatten_questions(paper: ExamDocument) -> List[FlattenedQuestion]:
    """시험지의 섹션 구조를 풀어 전역 순서의 문제 리스트로 만든다."""
    flattened: List[FlattenedQuestion] = []
    # order 가 같으면 문서상 순서 유지 (sorted 는 stable)
    for section in sorted(paper.sections, key=lambda s: s.order):
        for question in section.questions:
            flattened.append(
                FlattenedQuestion(
                    **question.model_dump(),
                    section_id=section.section_id,
                    section_title=section.title,
                    global_index=len(flattened),
                )
            )
    return flattened
