"""
api/routes.py — FastAPI 엔드포인트

상태 머신 호출은 모두 동기 함수이며 이벤트 루프 위에서 await 없이 연달아 실행된다.
→ 한 요청의 상태 변경(타이머 틱 → 자동 제출 포함)은 다음 요청보다 먼저 끝난다.
시험지/응시 기록 파일 I/O 는 상태 변경이 끝난 뒤 asyncio.to_thread 로 실행한다.
"""

import asyncio
from functools import lru_cache
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

import config
import api.session as session

from testprep_cbt.models.exam_model import FlattenedQuestion
from testprep_cbt.models.result_model import ExamResult
from testprep_cbt.models.session_state import ExamState, ExamStatus, UserAnswer
from testprep_cbt.services import attempt_service as attempts
from testprep_cbt.services.analytics_service import (
    calculate_history_stats,
    score_trend,
    strong_topics,
    time_distribution,
    timer_class,
    topics_by_accuracy,
    weak_topics,
)
from testprep_cbt.services.attempt_store import AttemptStore
from testprep_cbt.services.exam_repository import ExamRepository
from testprep_cbt.services.exam_service import evaluate_exam, get_incorrect_results
from testprep_cbt.services.formatting import format_correct_answer, format_time, format_user_answer
from testprep_cbt.services.progress_sync import ProgressSync

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class LoadExamBody(BaseModel):
    paper_id: str

class NavigateBody(BaseModel):
    index: int = 0

class SaveAnswerBody(BaseModel):
    question_id: str
    answer: UserAnswer

class QuestionIdBody(BaseModel):
    question_id: str

class TimerBody(BaseModel):
    remaining_seconds: int

class ProctorEventBody(BaseModel):
    event: Literal["focus_lost", "fullscreen_exit"]


# ── 의존성 ───────────────────────────────────────────────────────────────────

@lru_cache
def get_repository() -> ExamRepository:
    return ExamRepository(config.EXAM_DIR)


@lru_cache
def get_attempt_store() -> AttemptStore:
    return AttemptStore(config.ATTEMPTS_FILE)


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _sid(request: Request) -> str:
    return request.state.session_id


def _require_state(sid: str) -> ExamState:
    exam_state: ExamState | None = session.get(sid, "exam_state")
    if exam_state is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return exam_state


def _question_to_dict(q: FlattenedQuestion, reveal_answer: bool) -> dict:
    """문제 dict. 제출 전에는 정답을 내보내지 않는다."""
    d = {
        "question_id": q.question_id,
        "index": q.index,
        "type": q.type.value,
        "question_text": q.question_text,
        "image": q.image,
        "options": q.options,
        "topics": q.topics,
        "difficulty": q.difficulty,
        "marks_scheme": q.marks_scheme.model_dump(),
        "section_id": q.section_id,
        "section_title": q.section_title,
        "global_index": q.global_index,
    }
    if reveal_answer:
        d["correct_answer"] = q.correct_answer.model_dump()
    return d


async def _after_mutation(sid: str, exam_state: ExamState) -> None:
    """자동 제출 감지 + 주기적 체크포인트."""
    sync: ProgressSync | None = session.get(sid, "sync")
    if exam_state.is_submitted and session.get(sid, "result") is None:
        await _finalize(sid, exam_state)
    elif sync is not None:
        await asyncio.to_thread(sync.maybe_checkpoint, exam_state)


async def _finalize(sid: str, exam_state: ExamState) -> ExamResult:
    """제출된 상태를 채점하고 결과를 세션과 응시 기록에 남긴다."""
    # 결과는 응시 기록 저장(await) 전에 세션에 넣는다
    result = evaluate_exam(exam_state.paper, exam_state.questions, exam_state.question_states)
    session.put(sid, "result", result)

    sync: ProgressSync | None = session.get(sid, "sync")
    if sync is not None:
        await asyncio.to_thread(sync.submit, exam_state, {
            "total_score": result.total_score,
            "max_score": result.max_score,
            "percentage": result.percentage,
            "correct_count": result.correct_count,
            "incorrect_count": result.incorrect_count,
            "unattempted_count": result.unattempted_count,
            "accuracy": result.accuracy,
            "total_time_used_seconds": result.total_time_used_seconds,
            "focus_lost_count": exam_state.focus_lost_count,
            "fullscreen_exit_count": exam_state.fullscreen_exit_count,
        })
    return result


def _state_summary(exam_state: ExamState) -> Dict[str, Any]:
    total_seconds = exam_state.paper.duration_minutes * 60 if exam_state.paper else 0
    return {
        "paper_id": exam_state.paper.paper_id if exam_state.paper else None,
        "status": exam_state.status.value,
        "current_quest_index": exam_state.current_quest_index,
        "remaining_time_seconds": exam_state.remaining_time_seconds,
        "remaining_time_text": format_time(exam_state.remaining_time_seconds),
        "timer_class": timer_class(exam_state.remaining_time_seconds, total_seconds),
        "total": len(exam_state.questions),
        "answered_count": attempts.get_total_answered(exam_state),
        "marked_count": attempts.get_total_marked_for_review(exam_state),
        "status_summary": attempts.get_status_summary(exam_state),
        "question_statuses": {
            q.question_id: attempts.get_question_status(exam_state, q.question_id).value
            for q in exam_state.questions
        },
    }


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/health")
async def health():
    return {"status": "ok"}


@router.get("/api/exams")
async def list_exams(repo: ExamRepository = Depends(get_repository)):
    return await asyncio.to_thread(repo.list_exams)


@router.get("/api/exams/{paper_id}")
async def get_exam(paper_id: str, repo: ExamRepository = Depends(get_repository)):
    paper = await asyncio.to_thread(repo.get_document, paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail="시험지를 찾을 수 없습니다.")
    return {
        "paper_id": paper.paper_id,
        "exam_id": paper.exam_id,
        "label": paper.label,
        "year": paper.year,
        "type": paper.type.value,
        "duration_minutes": paper.duration_minutes,
        "total_marks": paper.total_marks,
        "total_questions": paper.question_count,
        "sections": [
            {"section_id": s.section_id, "title": s.title, "question_count": len(s.questions)}
            for s in paper.sections
        ],
    }


@router.post("/api/load-exam")
async def load_exam(
    body: LoadExamBody,
    request: Request,
    repo: ExamRepository = Depends(get_repository),
    store: AttemptStore = Depends(get_attempt_store),
):
    paper = await asyncio.to_thread(repo.get_document, body.paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail="시험지를 찾을 수 없습니다.")

    sid = _sid(request)
    exam_state = attempts.load_exam(paper, config.EMPTY_ANSWER_POLICY)
    session.put(sid, "exam_state", exam_state)
    session.put(sid, "sync", ProgressSync(store, config.CHECKPOINT_INTERVAL_SECONDS))
    session.put(sid, "result", None)
    return {
        "total": len(exam_state.questions),
        "duration_minutes": paper.duration_minutes,
        "remaining_time_seconds": exam_state.remaining_time_seconds,
        "ok": True,
    }


@router.post("/api/start-exam")
async def start_exam(request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.start_exam(exam_state)
    attempt_id = None
    if ok:
        sync: ProgressSync | None = session.get(sid, "sync")
        if sync is not None:
            attempt_id = await asyncio.to_thread(sync.open_attempt, exam_state)
    return {"ok": ok, "attempt_id": attempt_id, "status": exam_state.status.value}


@router.get("/api/exam-state")
async def get_exam_state(request: Request):
    return _state_summary(_require_state(_sid(request)))


@router.get("/api/question/{index}")
async def get_question(index: int, request: Request):
    exam_state = _require_state(_sid(request))
    if not (0 <= index < len(exam_state.questions)):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    q = exam_state.questions[index]
    record = exam_state.question_states[q.question_id]
    d = _question_to_dict(q, reveal_answer=exam_state.is_submitted)
    d.update({
        "saved_answer": record.answer.model_dump(),
        "marked_for_review": record.marked_for_review,
        "time_spent_seconds": record.time_spent_seconds,
        "status": attempts.get_question_status(exam_state, q.question_id).value,
        "total": len(exam_state.questions),
    })
    return d


@router.post("/api/navigate")
async def navigate(body: NavigateBody, request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.go_to_question(exam_state, body.index)
    await _after_mutation(sid, exam_state)
    return {"ok": ok, "index": exam_state.current_quest_index}


@router.post("/api/next")
async def next_question(request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.next_question(exam_state)
    await _after_mutation(sid, exam_state)
    return {"ok": ok, "index": exam_state.current_quest_index}


@router.post("/api/previous")
async def previous_question(request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.previous_question(exam_state)
    await _after_mutation(sid, exam_state)
    return {"ok": ok, "index": exam_state.current_quest_index}


@router.post("/api/save-answer")
async def save_answer(body: SaveAnswerBody, request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.set_answer(exam_state, body.question_id, body.answer)
    await _after_mutation(sid, exam_state)
    return {"ok": ok, "answered_count": attempts.get_total_answered(exam_state)}


@router.post("/api/clear-answer")
async def clear_answer(body: QuestionIdBody, request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.clear_answer(exam_state, body.question_id)
    await _after_mutation(sid, exam_state)
    return {"ok": ok, "answered_count": attempts.get_total_answered(exam_state)}


@router.post("/api/toggle-mark")
async def toggle_mark(body: QuestionIdBody, request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.toggle_mark_for_review(exam_state, body.question_id)
    await _after_mutation(sid, exam_state)
    return {"ok": ok, "marked_count": attempts.get_total_marked_for_review(exam_state)}


@router.post("/api/timer")
async def timer_tick(body: TimerBody, request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    ok = attempts.update_remaining_time(exam_state, body.remaining_seconds)
    await _after_mutation(sid, exam_state)
    return {
        "ok": ok,
        "remaining_time_seconds": exam_state.remaining_time_seconds,
        "status": exam_state.status.value,
        "auto_submitted": ok and exam_state.is_submitted,
    }


@router.post("/api/proctor-event")
async def proctor_event(body: ProctorEventBody, request: Request):
    exam_state = _require_state(_sid(request))
    if body.event == "focus_lost":
        ok = attempts.record_focus_lost(exam_state)
    else:
        ok = attempts.record_fullscreen_exit(exam_state)
    return {
        "ok": ok,
        "focus_lost_count": exam_state.focus_lost_count,
        "fullscreen_exit_count": exam_state.fullscreen_exit_count,
    }


@router.post("/api/submit-exam")
async def submit_exam(request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    if not attempts.submit_exam(exam_state):
        if exam_state.is_submitted:
            raise HTTPException(status_code=400, detail="이미 제출된 시험입니다.")
        raise HTTPException(status_code=400, detail="진행 중인 시험이 아닙니다.")

    result = await _finalize(sid, exam_state)
    return {"ok": True, "total_score": result.total_score, "max_score": result.max_score}


@router.get("/api/results")
async def get_results(request: Request):
    sid = _sid(request)
    exam_state = _require_state(sid)
    if exam_state.status != ExamStatus.SUBMITTED:
        raise HTTPException(status_code=400, detail="시험이 아직 제출되지 않았습니다.")

    result: ExamResult | None = session.get(sid, "result")
    if result is None:
        result = await _finalize(sid, exam_state)

    questions = {q.question_id: q for q in exam_state.questions}
    incorrect_data = []
    for r in get_incorrect_results(result):
        d = _question_to_dict(questions[r.question_id], reveal_answer=True)
        d["user_answer_text"] = format_user_answer(r.user_answer)
        d["correct_answer_text"] = format_correct_answer(r.correct_answer)
        incorrect_data.append(d)

    return {
        **result.model_dump(),
        "total_time_used_text": format_time(result.total_time_used_seconds),
        "strong_topics": [t.topic for t in strong_topics(result.topic_stats)],
        "weak_topics": [t.topic for t in weak_topics(result.topic_stats)],
        "topics_by_accuracy": [t.model_dump() for t in topics_by_accuracy(result.topic_stats)],
        "time_distribution": time_distribution(result.question_results),
        "incorrect_questions": incorrect_data,
        "focus_lost_count": exam_state.focus_lost_count,
        "fullscreen_exit_count": exam_state.fullscreen_exit_count,
    }


@router.get("/api/attempts")
async def list_attempts(store: AttemptStore = Depends(get_attempt_store)):
    return [
        {
            "id": a["id"],
            "paper_id": a["paper_id"],
            "status": a["status"],
            "started_at": a["started_at"],
            "ended_at": a["ended_at"],
            "final_score": a["final_score"],
        }
        for a in await asyncio.to_thread(store.list_attempts)
    ]


@router.get("/api/attempts/{attempt_id}")
async def get_attempt(attempt_id: int, store: AttemptStore = Depends(get_attempt_store)):
    attempt = await asyncio.to_thread(store.get_attempt, attempt_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="응시 기록을 찾을 수 없습니다.")
    return attempt


@router.get("/api/history")
async def get_history(store: AttemptStore = Depends(get_attempt_store)):
    completed = [a for a in await asyncio.to_thread(store.list_attempts) if a["status"] == "completed"]
    return {
        "stats": calculate_history_stats(completed),
        "trend": score_trend(completed),
    }


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(_sid(request))
    return {"ok": True}
