"""
services/exam_service.py

시험 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성: UI 코드, 전역 상태 변경 없음, 시계 참조 없음.
같은 입력이면 항상 같은 결과를 낸다.
"""

from typing import Dict, List, Mapping, Tuple

from testprep_cbt.models.exam_model import (
    ExamDocument,
    FlattenedQuestion,
    MultiChoiceKey,
    NumericalKey,
    Question,
    SingleChoiceKey,
)
from testprep_cbt.models.result_model import ExamResult, QuestionEvaluationResult, TopicStats
from testprep_cbt.models.session_state import (
    MultiChoiceAnswer,
    NumericalAnswer,
    QuestionAttemptState,
    SingleChoiceAnswer,
    UserAnswer,
)
from testprep_cbt.services.analytics_service import (
    calculate_avg_time_per_question,
    classify_strength,
)


def _is_correct(question: Question, user_answer: UserAnswer) -> bool:
    """유형이 같은 답안과 정답을 비교한다."""
    key = question.correct_answer

    if isinstance(key, SingleChoiceKey) and isinstance(user_answer, SingleChoiceAnswer):
        return user_answer.selected_index == key.correct_option_index

    if isinstance(key, MultiChoiceKey) and isinstance(user_answer, MultiChoiceAnswer):
        # 부분 일치는 오답 (부분 점수 없음)
        return set(user_answer.selected_indices) == set(key.correct_option_indices)

    if isinstance(key, NumericalKey) and isinstance(user_answer, NumericalAnswer):
        if user_answer.value is None:
            return False
        return any(r.min <= user_answer.value <= r.max for r in key.accepted_ranges)

    return False


def evaluate_question(question: Question, user_answer: UserAnswer) -> Tuple[bool, float]:
    """
    단일 문제 채점.

    판정 순서:
      1. 미응답('none')        → (False, marks_unattempted)
      2. 답안/정답 유형 불일치 → (False, marks_incorrect)
      3. 유형별 비교: 단일: 인덱스 일치 / 복수: 집합 완전 일치 / 수치: 허용 범위(양끝 포함) 중 하나에 포함

    Returns:
        (정답 여부, 획득 점수)
    """
    scheme = question.marks_scheme

    if user_answer.type == "none":
        return False, scheme.marks_unattempted

    if user_answer.type != question.correct_answer.type:
        return False, scheme.marks_incorrect

    is_correct = _is_correct(question, user_answer)
    return is_correct, scheme.marks_correct if is_correct else scheme.marks_incorrect


def calculate_topic_stats(
    questions: List[FlattenedQuestion],
    question_states: Mapping[str, QuestionAttemptState],
    evaluation_results: Mapping[str, QuestionEvaluationResult],
) -> List[TopicStats]:
    """
    토픽별 통계를 계산한다.

    한 문제는 자신이 가진 모든 토픽에 각각 집계된다 (분할이 아님).
    marks_obtained 는 응답한 문제만 합산한다.

    Returns:
        total_questions 내림차순 TopicStats 리스트.
        동률이면 처음 등장한 순서를 유지.
    """
    buckets: Dict[str, Dict[str, float]] = {}

    for question in questions:
        state = question_states.get(question.question_id)
        result = evaluation_results.get(question.question_id)
        if state is None or result is None:
            continue

        for topic in question.topics:
            b = buckets.setdefault(topic, {
                "total_questions": 0,
                "attempted_questions": 0,
                "correct_count": 0,
                "incorrect_count": 0,
                "unattempted_count": 0,
                "marks_obtained": 0.0,
                "max_marks": 0.0,
                "total_time_seconds": 0,
            })
            b["total_questions"] += 1
            b["max_marks"] += question.marks_scheme.marks_correct
            b["total_time_seconds"] += state.time_spent_seconds

            if not state.is_answered:
                b["unattempted_count"] += 1
                continue

            b["attempted_questions"] += 1
            b["marks_obtained"] += result.marks_obtained
            if result.is_correct:
                b["correct_count"] += 1
            else:
                b["incorrect_count"] += 1

    stats: List[TopicStats] = []
    for topic, b in buckets.items():
        attempted = int(b["attempted_questions"])
        accuracy = b["correct_count"] / attempted * 100 if attempted else 0.0
        stats.append(TopicStats(
            topic=topic,
            total_questions=int(b["total_questions"]),
            attempted_questions=attempted,
            correct_count=int(b["correct_count"]),
            incorrect_count=int(b["incorrect_count"]),
            unattempted_count=int(b["unattempted_count"]),
            marks_obtained=b["marks_obtained"],
            max_marks=b["max_marks"],
            accuracy=accuracy,
            total_time_seconds=int(b["total_time_seconds"]),
            avg_time_per_question=calculate_avg_time_per_question(
                int(b["total_time_seconds"]), int(b["total_questions"])
            ),
            strength=classify_strength(attempted, accuracy),
        ))

    return sorted(stats, key=lambda s: s.total_questions, reverse=True)


def evaluate_exam(
    paper: ExamDocument,
    questions: List[FlattenedQuestion],
    question_states: Mapping[str, QuestionAttemptState],
) -> ExamResult:
    """
    제출된 응시 상태 전체를 채점한다.

    Args:
        paper:           시험지 (paper_id, label, duration_minutes 사용).
        questions:       평탄화된 문제 리스트 (전역 순서).
        question_states: {question_id: QuestionAttemptState}.
                         기록이 없는 문제는 미응답, 0초로 간주.

    Returns:
        ExamResult. 분모가 0 인 비율(percentage, accuracy, 평균 시간)은 0.
    """
    question_results: List[QuestionEvaluationResult] = []
    evaluation_map: Dict[str, QuestionEvaluationResult] = {}
    effective_states: Dict[str, QuestionAttemptState] = {}

    total_score = 0.0
    max_score = 0.0
    correct_count = 0
    incorrect_count = 0
    unattempted_count = 0
    total_time_used = 0

    for question in questions:
        state = question_states.get(question.question_id) or QuestionAttemptState(
            question_id=question.question_id
        )
        effective_states[question.question_id] = state
        user_answer = state.answer

        is_correct, marks = evaluate_question(question, user_answer)
        result = QuestionEvaluationResult(
            question_id=question.question_id,
            is_correct=is_correct,
            marks_obtained=marks,
            user_answer=user_answer,
            correct_answer=question.correct_answer,
            time_spent_seconds=state.time_spent_seconds,
            topics=list(question.topics),
        )
        question_results.append(result)
        evaluation_map[question.question_id] = result

        total_score += marks
        max_score += question.marks_scheme.marks_correct
        total_time_used += state.time_spent_seconds

        if user_answer.type == "none":
            unattempted_count += 1
        elif is_correct:
            correct_count += 1
        else:
            incorrect_count += 1

    attempted = correct_count + incorrect_count

    return ExamResult(
        paper_id=paper.paper_id,
        paper_label=paper.label,
        total_score=total_score,
        max_score=max_score,
        percentage=total_score / max_score * 100 if max_score > 0 else 0.0,
        total_questions=len(questions),
        attempted_questions=attempted,
        correct_count=correct_count,
        incorrect_count=incorrect_count,
        unattempted_count=unattempted_count,
        accuracy=correct_count / attempted * 100 if attempted else 0.0,
        total_time_used_seconds=total_time_used,
        total_time_allowed_seconds=paper.duration_minutes * 60,
        avg_time_per_question=calculate_avg_time_per_question(total_time_used, len(questions)),
        topic_stats=calculate_topic_stats(questions, effective_states, evaluation_map),
        question_results=question_results,
    )


def get_incorrect_results(result: ExamResult) -> List[QuestionEvaluationResult]:
    """
    오답 문제 리스트를 반환한다 (오답 노트용).

    응답했지만 틀린 문제만 포함하며 미응답은 제외. 원본 순서 유지.
    """
    return [
        r for r in result.question_results
        if r.user_answer.type != "none" and not r.is_correct
    ]
