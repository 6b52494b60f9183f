"""
services/exam_repository.py

시험지 JSON 파일 저장소 (읽기 전용).
Public API:
  - list_exams() -> List[dict]                 : exam_id 별로 묶은 시험 목록
  - get_document(paper_id) -> ExamDocument | None : 시험지 1건 (없으면 None)

읽을 수 없거나 검증에 실패한 파일은 로그만 남기고 건너뛴다.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from testprep_cbt.models.exam_model import ExamDocument

logger = logging.getLogger(__name__)


class ExamRepository:
    """디렉토리의 *.json 시험지 파일을 읽는 저장소"""

    def __init__(self, exam_dir: str):
        self.exam_dir = Path(exam_dir)

    def _iter_documents(self) -> Iterator[ExamDocument]:
        if not self.exam_dir.is_dir():
            logger.warning(f"시험지 디렉토리가 없습니다: {self.exam_dir}")
            return

        for path in sorted(self.exam_dir.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                yield ExamDocument.model_validate(data)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"시험지 파일 읽기 실패 ({path.name}): {e}")
            except ValidationError as e:
                logger.error(f"시험지 검증 실패 ({path.name}): {e.error_count()}건")

    def list_exams(self) -> List[Dict[str, Any]]:
        """
        시험 카탈로그.

        Returns:
            [{"exam_id": str, "name": str, "papers": [PaperInfo dict, ...]}, ...]
            name 은 exam_id 의 첫 '_' 를 공백으로 바꾼 값.
        """
        grouped: Dict[str, Dict[str, Any]] = {}

        for paper in self._iter_documents():
            entry = grouped.setdefault(paper.exam_id, {
                "exam_id": paper.exam_id,
                "name": paper.exam_id.replace("_", " ", 1),
                "papers": [],
            })
            entry["papers"].append({
                "paper_id": paper.paper_id,
                "label": paper.label,
                "year": paper.year,
                "type": paper.type.value,
                "duration_minutes": paper.duration_minutes,
                "total_questions": paper.question_count,
                "total_marks": paper.total_marks,
            })

        return list(grouped.values())

    def get_document(self, paper_id: str) -> Optional[ExamDocument]:
        """paper_id 로 시험지를 찾는다. 없으면 None."""
        for paper in self._iter_documents():
            if paper.paper_id == paper_id:
                return paper
        logger.info(f"시험지를 찾을 수 없습니다: {paper_id}")
        return None
