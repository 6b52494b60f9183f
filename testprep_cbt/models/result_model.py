"""
models/result_model.py

채점 결과 모델. evaluate_exam() 이 생성하며 이후 변경되지 않는다.
"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from testprep_cbt.models.exam_model import CorrectAnswer
from testprep_cbt.models.session_state import UserAnswer

Strength = Literal["weak", "moderate", "strong"]


class QuestionEvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    is_correct: bool
    marks_obtained: float
    user_answer: UserAnswer
    correct_answer: CorrectAnswer
    time_spent_seconds: int = 0
    topics: List[str] = Field(default_factory=list)


class TopicStats(BaseModel):
    """토픽별 통계. accuracy 는 백분율 (정답 / 응답)."""

    model_config = ConfigDict(frozen=True)

    topic: str
    total_questions: int = 0
    attempted_questions: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    unattempted_count: int = 0
    marks_obtained: float = 0.0
    max_marks: float = 0.0
    accuracy: float = 0.0
    total_time_seconds: int = 0
    avg_time_per_question: int = 0
    strength: Strength = "moderate"


class ExamResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    paper_id: str
    paper_label: str

    # 전체 통계
    total_score: float
    max_score: float
    percentage: float
    total_questions: int
    attempted_questions: int
    correct_count: int
    incorrect_count: int
    unattempted_count: int
    accuracy: float
    total_time_used_seconds: int
    total_time_allowed_seconds: int
    avg_time_per_question: int

    # 상세
    topic_stats: List[TopicStats] = Field(default_factory=list)
    question_results: List[QuestionEvaluationResult] = Field(default_factory=list)
