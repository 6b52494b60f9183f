import json
import shutil

from testprep_cbt.services.exam_repository import ExamRepository


def test_catalog_groups_papers_by_exam(sample_exam_dir):
    catalog = ExamRepository(str(sample_exam_dir)).list_exams()

    assert len(catalog) == 1
    exam = catalog[0]
    assert exam["exam_id"] == "GATE_CS"
    assert exam["name"] == "GATE CS"
    paper = exam["papers"][0]
    assert paper["paper_id"] == "gate_cs_sample"
    assert paper["total_questions"] == 6
    assert paper["duration_minutes"] == 20


def test_get_document(sample_exam_dir):
    repo = ExamRepository(str(sample_exam_dir))

    paper = repo.get_document("gate_cs_sample")

    assert paper is not None
    assert [s.section_id for s in paper.sections] == ["GA", "CS"]
    assert repo.get_document("missing") is None


def test_invalid_files_are_skipped(tmp_path, sample_exam_dir):
    shutil.copy(sample_exam_dir / "sample_exam.json", tmp_path / "good.json")
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "invalid.json").write_text(json.dumps({"paper_id": "x"}), encoding="utf-8")

    catalog = ExamRepository(str(tmp_path)).list_exams()

    assert [p["paper_id"] for e in catalog for p in e["papers"]] == ["gate_cs_sample"]


def test_missing_directory_returns_empty_catalog(tmp_path):
    assert ExamRepository(str(tmp_path / "nope")).list_exams() == []
