"""
services/attempt_store.py

응시 기록 저장소 (JSON 파일 1개, 레코드 리스트).

로컬 ExamState 가 항상 기준이며, 이 저장소는 진행 상황/제출 결과의 사본을 보관한다.
레코드 상태: started → completed
"""

import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AttemptNotFoundError(ValueError):
    pass


class AttemptClosedError(ValueError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStore:
    """응시 기록 저장소"""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write([])
            logger.info(f"응시 기록 파일 생성: {self.path}")

    # ── 파일 I/O ─────────────────────────────────────────────────────────────

    def _read(self) -> List[Dict[str, Any]]:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, attempts: List[Dict[str, Any]]) -> None:
        # 임시 파일에 쓴 뒤 os.replace 로 교체
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(attempts, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def _update(self, attempt_id: int, **changes) -> Dict[str, Any]:
        attempts = self._read()
        for i, attempt in enumerate(attempts):
            if attempt["id"] == attempt_id:
                attempts[i] = {**attempt, **changes}
                self._write(attempts)
                return attempts[i]
        raise AttemptNotFoundError(f"응시 기록을 찾을 수 없습니다: {attempt_id}")

    # ── Public API ───────────────────────────────────────────────────────────

    def create_attempt(self, paper_id: str, duration_minutes: int) -> Dict[str, Any]:
        """새 응시 기록을 만들고 반환한다. id 는 기존 최대값 + 1."""
        with self._lock:
            attempts = self._read()
            now = _utcnow()
            attempt = {
                "id": max((a["id"] for a in attempts), default=0) + 1,
                "paper_id": paper_id,
                "status": "started",
                "started_at": now.isoformat(),
                "expected_end": (now + timedelta(minutes=duration_minutes)).isoformat(),
                "ended_at": None,
                "answers": {},
                "times": {},
                "final_score": None,
                "summary": None,
            }
            attempts.append(attempt)
            self._write(attempts)

        logger.info(f"응시 기록 생성: #{attempt['id']} ({paper_id})")
        return attempt

    def save_progress(
        self,
        attempt_id: int,
        answers: Dict[str, Any],
        times: Dict[str, int],
    ) -> Dict[str, Any]:
        """진행 상황 저장. 기존 답안/시간 맵에 병합한다. 이미 제출된 기록이면 AttemptClosedError."""
        with self._lock:
            attempt = self._get(attempt_id)
            if attempt["status"] != "started":
                raise AttemptClosedError(f"이미 종료된 응시입니다: {attempt_id}")
            return self._update(
                attempt_id,
                answers={**attempt["answers"], **answers},
                times={**attempt["times"], **times},
            )

    def submit(
        self,
        attempt_id: int,
        answers: Optional[Dict[str, Any]],
        times: Optional[Dict[str, int]],
        summary: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """최종 제출. final_score 는 summary["total_score"] (없으면 0)."""
        with self._lock:
            attempt = self._get(attempt_id)
            if attempt["status"] == "completed":
                raise AttemptClosedError(f"이미 제출된 응시입니다: {attempt_id}")
            updated = self._update(
                attempt_id,
                status="completed",
                ended_at=_utcnow().isoformat(),
                answers=answers if answers is not None else attempt["answers"],
                times=times if times is not None else attempt["times"],
                final_score=(summary or {}).get("total_score", 0),
                summary=summary,
            )

        logger.info(f"응시 제출 저장: #{attempt_id} (점수 {updated['final_score']})")
        return updated

    def _get(self, attempt_id: int) -> Dict[str, Any]:
        for attempt in self._read():
            if attempt["id"] == attempt_id:
                return attempt
        raise AttemptNotFoundError(f"응시 기록을 찾을 수 없습니다: {attempt_id}")

    def get_attempt(self, attempt_id: int) -> Optional[Dict[str, Any]]:
        """응시 기록 1건. 없으면 None."""
        with self._lock:
            try:
                return self._get(attempt_id)
            except AttemptNotFoundError:
                return None

    def list_attempts(self) -> List[Dict[str, Any]]:
        """응시 기록 목록 (최근 시작 순)."""
        with self._lock:
            attempts = self._read()
        return sorted(attempts, key=lambda a: a["started_at"], reverse=True)
