"""
services/analytics_service.py

결과/이력 화면용 파생 통계.
순수 Python 함수로 구성: UI 코드, 전역 상태 변경 없음.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from testprep_cbt.models.result_model import QuestionEvaluationResult, Strength, TopicStats

# ── 강약 분류 기준 ───────────────────────────────────────────────────────────
MIN_ATTEMPTED_FOR_STRENGTH = 2   # 응답 2문항 미만이면 판단 보류 (moderate)
STRONG_ACCURACY = 80.0
WEAK_ACCURACY = 50.0

# ── 문항별 소요 시간 구간 (min 이상 max 미만) ────────────────────────────────
TIME_BUCKETS = [
    ("0-30s", 0, 30),
    ("30-60s", 30, 60),
    ("1-2min", 60, 120),
    ("2-3min", 120, 180),
    ("3-5min", 180, 300),
    ("5min+", 300, math.inf),
]

TREND_WINDOW = 3


def round_half_up(value: float) -> int:
    """0.5 는 올림 (파이썬 기본 round 의 banker's rounding 대신)."""
    return int(math.floor(value + 0.5))


def calculate_avg_time_per_question(total_time_seconds: int, question_count: int) -> int:
    if question_count == 0:
        return 0
    return round_half_up(total_time_seconds / question_count)


def classify_strength(attempted_questions: int, accuracy: float) -> Strength:
    """
    토픽 강약 분류.

    응답 문항이 MIN_ATTEMPTED_FOR_STRENGTH 미만이면 정답률과 무관하게 moderate.
    """
    if attempted_questions < MIN_ATTEMPTED_FOR_STRENGTH:
        return "moderate"
    if accuracy >= STRONG_ACCURACY:
        return "strong"
    if accuracy < WEAK_ACCURACY:
        return "weak"
    return "moderate"


def strong_topics(topic_stats: Sequence[TopicStats], limit: int = 5) -> List[TopicStats]:
    return [t for t in topic_stats if t.strength == "strong"][:limit]


def weak_topics(topic_stats: Sequence[TopicStats], limit: int = 5) -> List[TopicStats]:
    return [t for t in topic_stats if t.strength == "weak"][:limit]


def topics_by_accuracy(topic_stats: Sequence[TopicStats], limit: int = 10) -> List[TopicStats]:
    """정답률 내림차순 상위 토픽 (막대 그래프용)."""
    return sorted(
        (t for t in topic_stats if t.total_questions > 0),
        key=lambda t: t.accuracy,
        reverse=True,
    )[:limit]


def time_distribution(question_results: Sequence[QuestionEvaluationResult]) -> List[Dict[str, Any]]:
    """
    문항별 소요 시간을 구간으로 나눠 정답/오답 수를 센다.

    Returns:
        [{"label": str, "min": int, "max": int | None, "correct": int, "incorrect": int}, ...]
        마지막 구간의 max 는 None (상한 없음).
    """
    buckets = []
    for label, low, high in TIME_BUCKETS:
        in_bucket = [r for r in question_results if low <= r.time_spent_seconds < high]
        buckets.append({
            "label": label,
            "min": low,
            "max": None if math.isinf(high) else high,
            "correct": sum(1 for r in in_bucket if r.is_correct),
            "incorrect": sum(1 for r in in_bucket if not r.is_correct),
        })
    return buckets


def moving_average(scores: Sequence[float], window: int = TREND_WINDOW) -> List[float]:
    """직전 window 개(자기 자신 포함) 점수의 평균."""
    averages = []
    for i in range(len(scores)):
        chunk = scores[max(0, i - window + 1): i + 1]
        averages.append(sum(chunk) / len(chunk))
    return averages


def _parse_date(value: Optional[str]) -> datetime:
    """ISO 문자열 → aware datetime. tzinfo 가 없으면 UTC 로 간주."""
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _scored_attempts(attempts: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """점수가 있는 응시 기록만, 시작 시각 오름차순."""
    scored = [a for a in attempts if a.get("final_score") is not None]
    return sorted(scored, key=lambda a: _parse_date(a.get("started_at")))


def score_trend(attempts: Sequence[Dict[str, Any]], window: int = TREND_WINDOW) -> List[Dict[str, Any]]:
    """
    점수 추이 (이력 그래프용).

    Args:
        attempts: attempt_store 기록 리스트 (started_at, final_score 사용).

    Returns:
        [{"label": "#1", "attempt_id": int, "paper_id": str, "score": float, "moving_average": float}, ...]
    """
    ordered = _scored_attempts(attempts)
    scores = [float(a["final_score"]) for a in ordered]
    averages = moving_average(scores, window)
    return [
        {
            "label": f"#{i + 1}",
            "attempt_id": a.get("id"),
            "paper_id": a.get("paper_id"),
            "score": scores[i],
            "moving_average": averages[i],
        }
        for i, a in enumerate(ordered)
    ]


def calculate_history_stats(attempts: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    응시 이력 요약.

    improvement 는 첫 응시 대비 마지막 응시 점수 변화율(%)이며,
    첫 점수가 0 이면 0.
    """
    ordered = _scored_attempts(attempts)
    if not ordered:
        return {
            "total_attempts": 0,
            "avg_score": 0.0,
            "best_score": 0.0,
            "worst_score": 0.0,
            "completed_exams": 0,
            "improvement": 0,
        }

    scores = [float(a["final_score"]) for a in ordered]
    first, last = scores[0], scores[-1]
    improvement = (last - first) / abs(first) * 100 if first != 0 else 0.0

    return {
        "total_attempts": len(scores),
        "avg_score": sum(scores) / len(scores),
        "best_score": max(scores),
        "worst_score": min(scores),
        "completed_exams": len(scores),
        "improvement": round_half_up(improvement),
    }


def timer_class(remaining_seconds: int, total_seconds: int) -> str:
    """남은 시간 비율에 따른 타이머 경고 단계: 'danger' (5% 이하), 'warning' (15% 이하), ''."""
    if total_seconds <= 0:
        return ""
    ratio = remaining_seconds / total_seconds
    if ratio <= 0.05:
        return "danger"
    if ratio <= 0.15:
        return "warning"
    return ""
