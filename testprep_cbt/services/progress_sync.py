"""
services/progress_sync.py

응시 상태를 응시 기록 저장소로 복사하는 best-effort 동기화.

- 저장소 오류는 WARNING 로그만 남기고 삼킨다 → 로컬 상태 전이/채점은 항상 완료
- 체크포인트는 CHECKPOINT_INTERVAL_SECONDS 마다 1회, 마지막 성공 시점 기준
"""

import logging
import time
from typing import Any, Dict, Optional

from testprep_cbt.models.session_state import ExamState, ExamStatus
from testprep_cbt.services.attempt_service import answers_snapshot, times_snapshot
from testprep_cbt.services.attempt_store import AttemptStore

logger = logging.getLogger(__name__)


class ProgressSync:
    """세션 1개에 대응하는 동기화기. attempt_id 가 None 이면 아무것도 하지 않는다."""

    def __init__(self, store: AttemptStore, interval_seconds: int = 30):
        self.store = store
        self.interval_seconds = interval_seconds
        self.attempt_id: Optional[int] = None
        self.last_checkpoint: float = 0.0

    def open_attempt(self, state: ExamState, now: Optional[float] = None) -> Optional[int]:
        """원격 응시 기록 생성. 실패하면 None 이고 시험은 로컬로 계속 진행된다."""
        if state.paper is None:
            return None
        try:
            attempt = self.store.create_attempt(state.paper.paper_id, state.paper.duration_minutes)
        except Exception as e:
            logger.warning(f"응시 기록 생성 실패 (로컬 진행 계속): {e}")
            return None
        self.attempt_id = attempt["id"]
        self.last_checkpoint = time.time() if now is None else now
        return self.attempt_id

    def checkpoint(self, state: ExamState, now: Optional[float] = None) -> bool:
        """지금 즉시 진행 상황을 저장한다. 성공 여부 반환."""
        if self.attempt_id is None:
            return False
        try:
            self.store.save_progress(self.attempt_id, answers_snapshot(state), times_snapshot(state))
        except Exception as e:
            logger.warning(f"진행 상황 저장 실패 (#{self.attempt_id}): {e}")
            return False
        self.last_checkpoint = time.time() if now is None else now
        logger.debug(f"진행 상황 저장: #{self.attempt_id}")
        return True

    def maybe_checkpoint(self, state: ExamState, now: Optional[float] = None) -> bool:
        """진행 중이고 저장 주기가 지났을 때만 checkpoint()."""
        if state.status != ExamStatus.IN_PROGRESS:
            return False
        current = time.time() if now is None else now
        if current - self.last_checkpoint < self.interval_seconds:
            return False
        return self.checkpoint(state, current)

    def submit(self, state: ExamState, summary: Dict[str, Any]) -> bool:
        """제출 결과 저장. 실패해도 로컬 제출/채점에는 영향 없음."""
        if self.attempt_id is None:
            return False
        try:
            self.store.submit(self.attempt_id, answers_snapshot(state), times_snapshot(state), summary)
        except Exception as e:
            logger.warning(f"제출 결과 저장 실패 (#{self.attempt_id}): {e}")
            return False
        return True
