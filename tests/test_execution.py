import pytest

from examcore.errors import (
    DataIntegrityError, ErrorKind, NotFoundError, UnauthorizedError, ValidationError,
)
from examcore.models import ActivityLogEntry, ActivityType, AttemptStatus, TestPlan
from examcore.services.access_guard import RelationshipDirectory

from conftest import PLANNER, STRANGER, STUDENT


def _all_answers(correct=True):
    return [
        {"question_id": 1, "answer": "Paris" if correct else "Rome", "time_taken": 10},
        {"question_id": 2, "answer": "4", "time_taken": 5},
        {"question_id": 3, "answer": "water", "time_taken": 7},
    ]


# ================= CREATE =================

def test_create_attempt_freezes_questions_in_plan_order(engine, attempt):
    assert attempt.attempt_status == AttemptStatus.NOT_STARTED
    assert attempt.student_id == STUDENT
    assert attempt.question_set.ids() == [1, 2, 3]
    assert [slot.student_answer for slot in attempt.response_set] == [None, None, None]
    assert attempt.timing.time_allowed == 1800


def test_attempt_json_hides_correct_answers(attempt):
    data = attempt.to_dict()

    assert data["status"] == "NOT_STARTED"
    assert all("correct_answer" not in q for q in data["questions"])
    assert all("correct_answer_plain" not in q for q in data["questions"])


def test_create_returns_pending_attempt_instead_of_duplicating(engine, plan, attempt):
    again = engine.execution.create_attempt(plan.id, STUDENT)
    assert again.id == attempt.id


def test_create_after_start_makes_a_new_attempt(engine, plan, started):
    fresh = engine.execution.create_attempt(plan.id, STUDENT)
    assert fresh.id != started.id
    assert fresh.attempt_status == AttemptStatus.NOT_STARTED


def test_planner_may_create_but_attempt_belongs_to_student(engine, plan):
    attempt = engine.execution.create_attempt(plan.id, PLANNER)
    assert attempt.student_id == STUDENT


def test_stranger_cannot_create(engine, plan):
    with pytest.raises(UnauthorizedError):
        engine.execution.create_attempt(plan.id, STRANGER)


@pytest.mark.parametrize("caller", [None, "", "   "])
def test_caller_id_is_required(engine, plan, caller):
    with pytest.raises(UnauthorizedError) as exc:
        engine.execution.create_attempt(plan.id, caller)
    assert exc.value.kind == ErrorKind.UNAUTHORIZED


def test_unknown_plan_is_not_found(engine, plan):
    with pytest.raises(NotFoundError):
        engine.execution.create_attempt(999, STUDENT)


@pytest.mark.parametrize("bad_id", ["abc", 0, -2, None, True])
def test_malformed_ids_are_validation_errors(engine, plan, bad_id):
    with pytest.raises(ValidationError):
        engine.execution.create_attempt(bad_id, STUDENT)


def test_missing_catalog_question_is_not_found(engine, db, questions):
    db.session.add(TestPlan(id=2, student_id=STUDENT, planned_by=PLANNER,
                            configuration={"questions": [{"question_id": 1}, {"question_id": 77}]}))
    db.session.commit()

    with pytest.raises(NotFoundError):
        engine.execution.create_attempt(2, STUDENT)


def test_subtopic_plan_selects_questions_by_id(engine, db, questions):
    db.session.add(TestPlan(id=3, student_id=STUDENT, planned_by=PLANNER,
                            configuration={"subtopics": [100, 101], "total_question_count": 2}))
    db.session.commit()

    attempt = engine.execution.create_attempt(3, STUDENT)
    assert attempt.question_set.ids() == [1, 2]


def test_subtopic_plan_with_too_few_questions_is_rejected(engine, db, questions):
    db.session.add(TestPlan(id=4, student_id=STUDENT, planned_by=PLANNER,
                            configuration={"subtopics": [101], "total_question_count": 5}))
    db.session.commit()

    with pytest.raises(ValidationError) as exc:
        engine.execution.create_attempt(4, STUDENT)
    assert "Found 1, needed 5" in exc.value.message


# ================= TRANSITIONS =================

def test_start_sets_started_at(engine, clock, started):
    assert started.attempt_status == AttemptStatus.IN_PROGRESS
    assert started.to_dict()["started_at"] == clock.now.isoformat()


def test_start_twice_is_rejected(engine, started):
    with pytest.raises(ValidationError):
        engine.execution.start_attempt(started.id, STUDENT)


def test_pause_and_resume(engine, started):
    paused = engine.execution.pause_attempt(started.id, STUDENT)
    assert paused.attempt_status == AttemptStatus.PAUSED
    assert paused.paused_at is not None

    resumed = engine.execution.resume_attempt(started.id, STUDENT)
    assert resumed.attempt_status == AttemptStatus.IN_PROGRESS
    assert resumed.paused_at is None


def test_pause_requires_in_progress(engine, attempt):
    with pytest.raises(ValidationError, match="not in progress"):
        engine.execution.pause_attempt(attempt.id, STUDENT)


def test_resume_requires_paused(engine, started):
    with pytest.raises(ValidationError, match="not paused"):
        engine.execution.resume_attempt(started.id, STUDENT)


def test_only_the_owner_mutates(engine, started):
    with pytest.raises(UnauthorizedError):
        engine.execution.pause_attempt(started.id, PLANNER)


def test_unknown_attempt_is_not_found(engine, plan):
    with pytest.raises(NotFoundError):
        engine.execution.start_attempt(4242, STUDENT)


# ================= SINGLE ANSWERS =================

def test_submit_answer_grades_one_slot(engine, started):
    attempt = engine.execution.submit_answer(started.id, STUDENT, 1, "paris!", 12)

    slot = attempt.response_set.get(1)
    assert slot.student_answer == "paris!"
    assert slot.is_correct is True
    assert slot.time_spent == 12
    assert attempt.attempt_status == AttemptStatus.IN_PROGRESS


def test_submit_answer_requires_started_attempt(engine, attempt):
    with pytest.raises(ValidationError, match="must be started first"):
        engine.execution.submit_answer(attempt.id, STUDENT, 1, "Paris", 3)


def test_submit_answer_rejected_while_paused(engine, started):
    engine.execution.pause_attempt(started.id, STUDENT)
    with pytest.raises(ValidationError, match="resume"):
        engine.execution.submit_answer(started.id, STUDENT, 1, "Paris", 3)


def test_submit_answer_for_foreign_question_is_not_found(engine, started):
    with pytest.raises(NotFoundError):
        engine.execution.submit_answer(started.id, STUDENT, 99, "Paris", 3)


@pytest.mark.parametrize("answer,time_spent", [(None, 1), (42, 1), ("Paris", -1), ("Paris", 1.5)])
def test_submit_answer_validates_input(engine, started, answer, time_spent):
    with pytest.raises(ValidationError):
        engine.execution.submit_answer(started.id, STUDENT, 1, answer, time_spent)


@pytest.mark.kept_behavior
def test_last_single_answer_completes_the_attempt(engine, levels, started):
    engine.execution.submit_answer(started.id, STUDENT, 1, "Paris", 5)
    engine.execution.submit_answer(started.id, STUDENT, 2, "4", 5)
    attempt = engine.execution.submit_answer(started.id, STUDENT, 3, "Ice", 5)

    assert attempt.attempt_status == AttemptStatus.COMPLETED
    assert attempt.score == 67
    assert attempt.completed_at is not None

    completion = ActivityLogEntry.query.filter_by(
        student_id=STUDENT, activity_type=ActivityType.TEST_COMPLETION
    ).one()
    assert completion.xp_earned == 670


def test_no_answers_after_completion(engine, levels, started):
    engine.execution.submit_all_answers(started.id, STUDENT, _all_answers())
    engine.execution.complete_attempt(started.id, STUDENT)

    with pytest.raises(ValidationError, match="already been completed"):
        engine.execution.submit_answer(started.id, STUDENT, 1, "Rome", 1)


# ================= BULK ANSWERS =================

def test_submit_all_grades_without_completing(engine, clock, started):
    attempt = engine.execution.submit_all_answers(started.id, STUDENT, _all_answers(correct=False))

    assert attempt.attempt_status == AttemptStatus.IN_PROGRESS
    assert [slot.is_correct for slot in attempt.response_set] == [False, True, True]
    assert attempt.timing.end_time == int(clock.now.timestamp() * 1000)


def test_submit_all_keeps_client_end_time(engine, started):
    attempt = engine.execution.submit_all_answers(
        started.id, STUDENT, _all_answers(), end_time=1710064800000
    )
    assert attempt.timing.end_time == 1710064800000


@pytest.mark.parametrize("responses", [
    [],
    None,
    [{"question_id": 1, "answer": "", "time_taken": 1}],
    [{"question_id": 1, "answer": "Paris"}],
    [{"question_id": 1, "answer": "Paris", "time_taken": -4}],
    [{"answer": "Paris", "time_taken": 4}],
    ["Paris"],
])
def test_submit_all_rejects_malformed_batches(engine, started, responses):
    with pytest.raises(ValidationError):
        engine.execution.submit_all_answers(started.id, STUDENT, responses)


@pytest.mark.parametrize("bad_entry", [
    {"question_id": 55, "answer": "x", "time_taken": 1},
    {"question_id": 1, "answer": "again", "time_taken": 1},
])
def test_submit_all_rejects_whole_batch(engine, started, bad_entry):
    batch = [{"question_id": 1, "answer": "Paris", "time_taken": 3}, bad_entry]

    with pytest.raises(ValidationError):
        engine.execution.submit_all_answers(started.id, STUDENT, batch)

    attempt = engine.execution.get_attempt(started.id, STUDENT)
    assert attempt.response_set.get(1).student_answer is None


def test_submit_all_requires_in_progress(engine, attempt):
    with pytest.raises(ValidationError, match="must be started first"):
        engine.execution.submit_all_answers(attempt.id, STUDENT, _all_answers())


# ================= COMPLETION =================

def test_complete_not_started_is_rejected(engine, attempt):
    with pytest.raises(ValidationError, match="must be started first"):
        engine.execution.complete_attempt(attempt.id, STUDENT)


def test_complete_paused_requires_resume(engine, started):
    engine.execution.pause_attempt(started.id, STUDENT)
    with pytest.raises(ValidationError, match="resume the test first"):
        engine.execution.complete_attempt(started.id, STUDENT)


def test_complete_twice_is_rejected(engine, levels, started):
    engine.execution.submit_all_answers(started.id, STUDENT, _all_answers())
    engine.execution.complete_attempt(started.id, STUDENT)

    with pytest.raises(ValidationError, match="already been completed"):
        engine.execution.complete_attempt(started.id, STUDENT)


def test_complete_with_unanswered_questions_scores_them_wrong(engine, started):
    engine.execution.submit_answer(started.id, STUDENT, 1, "Paris", 4)
    result = engine.execution.complete_attempt(started.id, STUDENT)

    assert result.score == 33
    assert result.total_correct == 1
    assert result.total_questions == 3
    assert result.progression["xp_awarded"] == 330


def test_zero_score_logs_completion_without_xp(engine, started):
    result = engine.execution.complete_attempt(started.id, STUDENT)

    assert result.score == 0
    assert result.progression["xp_awarded"] == 0
    entry = ActivityLogEntry.query.filter_by(activity_type=ActivityType.TEST_COMPLETION).one()
    assert entry.xp_earned == 0


def test_failed_progression_rolls_back_completion(engine, started, monkeypatch):
    def boom(attempt, summary):
        raise RuntimeError("progress store unavailable")

    monkeypatch.setattr(engine.progression, "apply_completion", boom)
    engine.execution.submit_all_answers(started.id, STUDENT, _all_answers())

    with pytest.raises(RuntimeError):
        engine.execution.complete_attempt(started.id, STUDENT)

    attempt = engine.execution.get_attempt(started.id, STUDENT)
    assert attempt.attempt_status == AttemptStatus.IN_PROGRESS
    assert attempt.score is None
    assert attempt.completed_at is None


def test_missing_level_config_blocks_completion(engine, started):
    # 500 mastery XP + 1000 completion XP crosses level 1 with no level table
    engine.execution.submit_all_answers(started.id, STUDENT, _all_answers())

    with pytest.raises(ValidationError, match="Level configuration not found"):
        engine.execution.complete_attempt(started.id, STUDENT)

    assert engine.execution.get_attempt(started.id, STUDENT).attempt_status == AttemptStatus.IN_PROGRESS


# ================= READS =================

def test_results_only_after_completion(engine, started):
    with pytest.raises(ValidationError, match="only available after completing"):
        engine.execution.get_results(started.id, STUDENT)


def test_results_include_answers_and_counts(engine, levels, started):
    engine.execution.submit_all_answers(started.id, STUDENT, _all_answers(correct=False))
    engine.execution.complete_attempt(started.id, STUDENT)

    results = engine.execution.get_results(started.id, STUDENT)

    assert results["score"] == 67
    assert results["correct_answers"] == 2
    assert results["total_questions"] == 3
    assert results["questions"][0]["correct_answer_plain"] == "Paris"
    assert results["responses"][0]["student_answer"] == "Rome"


def test_planner_can_read_but_stranger_cannot(engine, started):
    assert engine.execution.get_attempt(started.id, PLANNER).id == started.id
    with pytest.raises(UnauthorizedError):
        engine.execution.get_attempt(started.id, STRANGER)


def test_guardian_can_read(engine, started):
    class Guardians(RelationshipDirectory):
        def is_guardian_of(self, caller_id, student_id):
            return (caller_id, student_id) == ("parent-1", STUDENT)

    engine.guard.relationships = Guardians()
    assert engine.execution.get_attempt(started.id, "parent-1").id == started.id


def test_calculate_score_keeps_status(engine, started):
    engine.execution.submit_answer(started.id, STUDENT, 1, "Paris", 4)
    engine.execution.submit_answer(started.id, STUDENT, 2, "four", 4)

    summary = engine.execution.calculate_score(started.id, STUDENT)

    assert summary == {"attempt_id": started.id, "score": 33, "correct_answers": 1, "total_questions": 3}
    attempt = engine.execution.get_attempt(started.id, STUDENT)
    assert attempt.score == 33
    assert attempt.attempt_status == AttemptStatus.IN_PROGRESS


def test_calculate_score_needs_a_started_attempt(engine, attempt):
    with pytest.raises(ValidationError):
        engine.execution.calculate_score(attempt.id, STUDENT)


def test_corrupt_response_payload_is_fatal(engine, db, started):
    started.response_data = [{"question_id": 1}]
    db.session.commit()

    with pytest.raises(DataIntegrityError):
        engine.execution.submit_answer(started.id, STUDENT, 1, "Paris", 1)
