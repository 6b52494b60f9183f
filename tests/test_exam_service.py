import pytest

from testprep_cbt.models.exam_model import Question, flatten_questions
from testprep_cbt.models.session_state import (
    MultiChoiceAnswer,
    NoAnswer,
    NumericalAnswer,
    QuestionAttemptState,
    SingleChoiceAnswer,
)
from testprep_cbt.services import attempt_service as svc
from testprep_cbt.services.exam_service import (
    evaluate_exam,
    evaluate_question,
    get_incorrect_results,
)

from conftest import T0, make_paper, make_question


def _question(type, correct, marks=(2, -1, 0)):
    return Question.model_validate(make_question("Q", type, correct, marks=marks))


def _states(**answers):
    return {
        qid: QuestionAttemptState(question_id=qid, answer=answer, time_spent_seconds=10)
        for qid, answer in answers.items()
    }


# ── evaluate_question ────────────────────────────────────────────────────────

def test_single_choice_correct_and_incorrect():
    q = _question("mcq_single", {"correct_option_index": 1})

    assert evaluate_question(q, SingleChoiceAnswer(selected_index=1)) == (True, 2)
    assert evaluate_question(q, SingleChoiceAnswer(selected_index=0)) == (False, -1)
    assert evaluate_question(q, SingleChoiceAnswer(selected_index=None)) == (False, -1)


def test_multi_choice_requires_exact_set():
    q = _question("mcq_multi", {"correct_option_indices": [0, 2]})

    assert evaluate_question(q, MultiChoiceAnswer(selected_indices=[0, 2])) == (True, 2)
    assert evaluate_question(q, MultiChoiceAnswer(selected_indices=[2, 0])) == (True, 2)
    assert evaluate_question(q, MultiChoiceAnswer(selected_indices=[0])) == (False, -1)
    assert evaluate_question(q, MultiChoiceAnswer(selected_indices=[0, 1, 2])) == (False, -1)


def test_numerical_range_is_inclusive():
    q = _question("nat", {"accepted_ranges": [{"min": 4.98, "max": 5.02}]}, marks=(1, 0, 0))

    assert evaluate_question(q, NumericalAnswer(value=4.98))[0] is True
    assert evaluate_question(q, NumericalAnswer(value=5.02))[0] is True
    assert evaluate_question(q, NumericalAnswer(value=5.0))[0] is True
    assert evaluate_question(q, NumericalAnswer(value=4.979999))[0] is False
    assert evaluate_question(q, NumericalAnswer(value=None)) == (False, 0)


def test_numerical_accepts_any_of_several_ranges():
    q = _question("nat", {"accepted_ranges": [{"min": 1, "max": 1}, {"min": 3, "max": 4}]})

    assert evaluate_question(q, NumericalAnswer(value=1))[0]
    assert evaluate_question(q, NumericalAnswer(value=3.5))[0]
    assert not evaluate_question(q, NumericalAnswer(value=2))[0]


@pytest.mark.parametrize("type, correct", [
    ("mcq_single", {"correct_option_index": 0}),
    ("mcq_multi", {"correct_option_indices": [1]}),
    ("nat", {"accepted_ranges": [{"min": 0, "max": 0}]}),
])
def test_unattempted_scores_marks_unattempted(type, correct):
    q = _question(type, correct, marks=(3, -1, 0.5))

    assert evaluate_question(q, NoAnswer()) == (False, 0.5)


def test_type_mismatch_is_graded_incorrect():
    q = _question("mcq_single", {"correct_option_index": 0})

    assert evaluate_question(q, NumericalAnswer(value=0)) == (False, -1)


# ── evaluate_exam ────────────────────────────────────────────────────────────

def test_end_to_end_scenario(scenario_paper):
    state = svc.load_exam(scenario_paper)
    svc.start_exam(state, now=T0)
    svc.set_answer(state, "Q1", SingleChoiceAnswer(selected_index=1))
    svc.go_to_question(state, 1, now=T0 + 30)
    svc.set_answer(state, "Q2", MultiChoiceAnswer(selected_indices=[0]))
    svc.go_to_question(state, 2, now=T0 + 90)
    svc.submit_exam(state, now=T0 + 100)

    result = evaluate_exam(scenario_paper, state.questions, state.question_states)

    assert result.total_score == pytest.approx(1)
    assert result.max_score == 5
    assert result.percentage == pytest.approx(20)
    assert result.correct_count == 1
    assert result.incorrect_count == 1
    assert result.unattempted_count == 1
    assert result.attempted_questions == 2
    assert result.accuracy == pytest.approx(50)
    assert result.total_time_used_seconds == 100
    assert result.total_time_allowed_seconds == 600
    assert result.avg_time_per_question == 33
    assert [r.marks_obtained for r in result.question_results] == [2, -1, 0]


def test_evaluation_is_deterministic(scenario_paper):
    questions = flatten_questions(scenario_paper)
    states = _states(Q1=SingleChoiceAnswer(selected_index=0), Q3=NumericalAnswer(value=10))

    first = evaluate_exam(scenario_paper, questions, states)
    second = evaluate_exam(scenario_paper, questions, states)

    assert first.model_dump_json() == second.model_dump_json()


def test_missing_state_is_treated_as_unattempted(scenario_paper):
    questions = flatten_questions(scenario_paper)

    result = evaluate_exam(scenario_paper, questions, {})

    assert result.unattempted_count == 3
    assert result.total_score == 0
    assert result.accuracy == 0
    assert result.avg_time_per_question == 0


def test_zero_denominators_default_to_zero():
    paper = make_paper(duration_minutes=0)

    result = evaluate_exam(paper, [], {})

    assert result.percentage == 0
    assert result.accuracy == 0
    assert result.avg_time_per_question == 0
    assert result.topic_stats == []


def test_average_time_rounds_half_up():
    paper = make_paper(("S", [
        make_question("A", "mcq_single", {"correct_option_index": 0}),
        make_question("B", "mcq_single", {"correct_option_index": 0}),
    ]))
    questions = flatten_questions(paper)
    states = {
        "A": QuestionAttemptState(question_id="A", time_spent_seconds=2),
        "B": QuestionAttemptState(question_id="B", time_spent_seconds=3),
    }

    assert evaluate_exam(paper, questions, states).avg_time_per_question == 3


# ── topic stats ──────────────────────────────────────────────────────────────

def test_topic_fan_out_counts_question_in_every_topic(scenario_paper):
    questions = flatten_questions(scenario_paper)
    states = _states(
        Q1=SingleChoiceAnswer(selected_index=1),
        Q2=MultiChoiceAnswer(selected_indices=[0]),
        Q3=NoAnswer(),
    )

    result = evaluate_exam(scenario_paper, questions, states)
    topics = {t.topic: t for t in result.topic_stats}

    assert topics["graphs"].total_questions == 1
    assert topics["graphs"].incorrect_count == 1
    assert topics["algorithms"].total_questions == 2
    assert topics["algorithms"].correct_count == 1
    assert topics["algorithms"].incorrect_count == 1
    assert topics["algorithms"].marks_obtained == pytest.approx(1)
    assert topics["algorithms"].max_marks == 4
    assert topics["algorithms"].total_time_seconds == 20
    assert topics["algorithms"].avg_time_per_question == 10
    assert topics["arithmetic"].unattempted_count == 1
    assert topics["arithmetic"].accuracy == 0


def test_topics_sorted_by_question_count_with_stable_ties(scenario_paper):
    result = evaluate_exam(scenario_paper, flatten_questions(scenario_paper), {})

    assert [t.topic for t in result.topic_stats] == ["algorithms", "graphs", "arithmetic"]


def test_single_attempt_topic_stays_moderate(scenario_paper):
    questions = flatten_questions(scenario_paper)
    states = _states(Q3=NumericalAnswer(value=10))

    result = evaluate_exam(scenario_paper, questions, states)
    arithmetic = next(t for t in result.topic_stats if t.topic == "arithmetic")

    assert arithmetic.accuracy == 100
    assert arithmetic.strength == "moderate"


def test_strength_is_classified_from_two_attempts():
    paper = make_paper(("S", [
        make_question(f"Q{i}", "mcq_single", {"correct_option_index": 0}, topics=["t"])
        for i in range(4)
    ]))
    questions = flatten_questions(paper)

    strong = evaluate_exam(paper, questions, _states(
        Q0=SingleChoiceAnswer(selected_index=0), Q1=SingleChoiceAnswer(selected_index=0),
    ))
    weak = evaluate_exam(paper, questions, _states(
        Q0=SingleChoiceAnswer(selected_index=1), Q1=SingleChoiceAnswer(selected_index=1),
    ))
    moderate = evaluate_exam(paper, questions, _states(
        Q0=SingleChoiceAnswer(selected_index=0), Q1=SingleChoiceAnswer(selected_index=1),
    ))

    assert strong.topic_stats[0].strength == "strong"
    assert weak.topic_stats[0].strength == "weak"
    assert moderate.topic_stats[0].strength == "moderate"


def test_incorrect_results_exclude_unattempted(scenario_paper):
    states = _states(
        Q1=SingleChoiceAnswer(selected_index=0),
        Q2=MultiChoiceAnswer(selected_indices=[0, 1]),
    )
    result = evaluate_exam(scenario_paper, flatten_questions(scenario_paper), states)

    assert [r.question_id for r in get_incorrect_results(result)] == ["Q1"]
