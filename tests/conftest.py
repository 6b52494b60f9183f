# FILE: tests/conftest.py

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from testprep_cbt.models.exam_model import ExamDocument

T0 = 1_700_000_000.0


def make_question(question_id, type, correct_answer, marks=(1, 0, 0), topics=(), options=None):
    """Question dict in exam document format."""
    if options is None:
        options = [] if type == "nat" else ["A", "B", "C", "D"]
    return {
        "question_id": question_id,
        "type": type,
        "question_text": f"Question {question_id}",
        "options": options,
        "correct_answer": {"type": type, **correct_answer},
        "marks_scheme": {
            "marks_correct": marks[0],
            "marks_incorrect": marks[1],
            "marks_unattempted": marks[2],
        },
        "topics": list(topics),
    }


def make_paper(*sections, duration_minutes=10, paper_id="paper-1"):
    """sections: (section_id, [question dicts]) tuples"""
    return ExamDocument.model_validate({
        "exam_id": "GATE_CS",
        "paper_id": paper_id,
        "label": "Test Paper",
        "year": 2024,
        "type": "Mock",
        "duration_minutes": duration_minutes,
        "total_marks": 5,
        "sections": [
            {"section_id": sid, "title": f"Section {sid}", "order": i, "questions": qs}
            for i, (sid, qs) in enumerate(sections)
        ],
    })


@pytest.fixture
def scenario_paper():
    """Q1 single (+2,-0.67,0), Q2 multi (+2,-1,0), Q3 nat [10,10] (+1,0,0)"""
    return make_paper(
        ("S1", [
            make_question("Q1", "mcq_single", {"correct_option_index": 1},
                          marks=(2, -0.67, 0), topics=["algorithms"]),
            make_question("Q2", "mcq_multi", {"correct_option_indices": [0, 1]},
                          marks=(2, -1, 0), topics=["graphs", "algorithms"]),
        ]),
        ("S2", [
            make_question("Q3", "nat", {"accepted_ranges": [{"min": 10, "max": 10}]},
                          marks=(1, 0, 0), topics=["arithmetic"]),
        ]),
    )


@pytest.fixture
def sample_exam_dir():
    return project_root / "exams"
