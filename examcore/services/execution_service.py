"""
Execution Service
Lifecycle of a single test attempt: create, start, pause/resume,
answer submission and completion
"""
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging

from examcore.errors import NotFoundError, ValidationError
from examcore.models import TestAttempt, AttemptStatus
from examcore.records import QuestionSet, ResponseSet, AttemptTiming
from examcore.services.locks import attempt_key, plan_key
from examcore.utils.helpers import now_utc

logger = logging.getLogger(__name__)

MUST_START_TO_SUBMIT = (
    'Cannot submit answers. Test must be started first. '
    'Please click "Start Test" before submitting answers.'
)
MUST_START_TO_COMPLETE = (
    'Cannot complete test. Test must be started first. '
    'Please click "Start Test" before attempting to complete the test.'
)
ALREADY_COMPLETED = 'Cannot complete test. Test has already been completed.'
PAUSED_ON_COMPLETE = 'Cannot complete test while it is paused. Please resume the test first.'
PAUSED_ON_SUBMIT = 'Cannot submit answers while the test is paused. Please resume the test first.'
SUBMIT_AFTER_COMPLETION = 'Cannot submit answers. Test has already been completed.'
INVALID_RESPONSE = (
    'Invalid response structure. Each response must have '
    'question_id, answer, and time_taken.'
)


@dataclass
class CompletionResult:
    attempt: TestAttempt
    score: int
    total_correct: int
    total_questions: int
    progression: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'attempt': self.attempt.to_dict(),
            'score': self.score,
            'total_correct': self.total_correct,
            'total_questions': self.total_questions,
            'progression': self.progression,
        }


def _parse_id(value, label):
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}: {value}")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}: {value}")
    if parsed <= 0:
        raise ValidationError(f"Invalid {label}: {value}")
    return parsed


def _is_non_negative_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class ExecutionService:
    """
    State machine for test attempts

    Every mutation holds the attempt's lock and runs in one store
    transaction; the version column on TestAttempt catches writers in
    other processes.
    """

    def __init__(self, store, guard, evaluator, scoring, progression, locks, clock=now_utc):
        self.store = store
        self.guard = guard
        self.evaluator = evaluator
        self.scoring = scoring
        self.progression = progression
        self.locks = locks
        self.clock = clock

    # ================= INTERNALS =================

    def _load(self, attempt_id):
        attempt = self.store.get_attempt(attempt_id)
        if attempt is None:
            raise NotFoundError(f"Test attempt {attempt_id} not found")
        return attempt

    @contextmanager
    def _mutating(self, attempt_id, caller_id):
        """Lock, load and authorize an attempt for a read-modify-write"""
        caller = self.guard.require_caller(caller_id)
        attempt_id = _parse_id(attempt_id, 'attempt ID')
        with self.locks.hold(attempt_key(attempt_id)), self.store.transaction():
            attempt = self._load(attempt_id)
            self.guard.check_can_mutate(attempt, caller)
            yield attempt

    def _select_questions(self, plan):
        """Catalog questions for a plan, in the order they will be asked"""
        question_ids = plan.configured_question_ids()
        if question_ids is not None:
            if not question_ids:
                raise ValidationError("Test plan has no questions configured")
            if len(set(question_ids)) != len(question_ids):
                raise ValidationError("Test plan lists a question more than once")
            found = self.store.get_questions(question_ids)
            missing = [qid for qid in question_ids if qid not in found]
            if missing:
                raise NotFoundError(f"Questions not found: {missing}")
            return [found[qid] for qid in question_ids]

        subtopics, total = plan.configured_subtopics()
        if total <= 0:
            raise ValidationError("Total questions must be positive")
        if not subtopics:
            raise ValidationError("Test plan has no subtopics configured")
        questions = self.store.questions_for_subtopics(subtopics, total)
        if len(questions) < total:
            raise ValidationError(
                f"Not enough questions available. Found {len(questions)}, needed {total}"
            )
        return questions

    def _grade(self, attempt, question, slot, answer, time_spent):
        slot.student_answer = answer
        slot.is_correct = self.evaluator.evaluate(question, answer)
        slot.time_spent = time_spent
        if question.subject_id is not None:
            self.progression.update_subject_mastery(
                attempt.student_id, question.subject_id, slot.is_correct
            )

    def _finalize(self, attempt):
        """Score, close the attempt and apply progression in the current transaction"""
        responses = attempt.response_set
        summary = self.scoring.score(attempt.question_set, responses)

        attempt.response_set = responses
        attempt.score = summary.score
        attempt.status = AttemptStatus.COMPLETED.value
        attempt.completed_at = self.clock()
        attempt.paused_at = None

        try:
            progression = self.progression.apply_completion(attempt, summary)
        except Exception:
            logger.error("Progression failed for attempt %s; completion rolled back",
                         attempt.id, exc_info=True)
            raise

        logger.info("Attempt %s completed by %s with score %s",
                    attempt.id, attempt.student_id, summary.score)
        return CompletionResult(
            attempt=attempt,
            score=summary.score,
            total_correct=summary.total_correct,
            total_questions=summary.total_questions,
            progression=progression,
        )

    # ================= CREATE / READ =================

    def create_attempt(self, plan_id, caller_id):
        """
        Materialize an attempt for a test plan

        Returns the plan's latest attempt instead when it has not been
        started yet.
        """
        caller = self.guard.require_caller(caller_id)
        plan_id = _parse_id(plan_id, 'test plan ID')

        with self.locks.hold(plan_key(plan_id)), self.store.transaction():
            plan = self.store.get_plan(plan_id)
            if plan is None:
                raise NotFoundError("Test plan not found")
            self.guard.check_can_create(plan, caller)

            latest = self.store.latest_attempt_for_plan(plan_id)
            if latest is not None and latest.attempt_status == AttemptStatus.NOT_STARTED:
                return latest

            question_set = QuestionSet(q.snapshot() for q in self._select_questions(plan))
            attempt = self.store.add(TestAttempt(
                test_plan_id=plan.id,
                student_id=plan.student_id,
                status=AttemptStatus.NOT_STARTED.value,
                question_data=question_set.to_list(),
                response_data=ResponseSet.empty_for(question_set).to_list(),
                timing_data=AttemptTiming(time_allowed=plan.time_limit).to_dict(),
                created_at=self.clock(),
            ))
            self.store.flush()
            logger.info("Created attempt %s for plan %s (%s questions)",
                        attempt.id, plan.id, len(question_set))
        return attempt

    def get_attempt(self, attempt_id, caller_id):
        caller = self.guard.require_caller(caller_id)
        attempt = self._load(_parse_id(attempt_id, 'attempt ID'))
        self.guard.check_can_read(attempt, caller)
        return attempt

    def get_results(self, attempt_id, caller_id):
        """Graded view of a completed attempt, correct answers included"""
        attempt = self.get_attempt(attempt_id, caller_id)
        if attempt.attempt_status != AttemptStatus.COMPLETED:
            raise ValidationError("Test results are only available after completing the test")

        data = attempt.to_dict(include_answers=True)
        responses = attempt.response_set
        return {
            'attempt_id': attempt.id,
            'score': attempt.score,
            'total_questions': len(attempt.question_set),
            'correct_answers': sum(1 for slot in responses if slot.is_correct),
            'completed_at': data['completed_at'],
            'questions': data['questions'],
            'responses': data['responses'],
        }

    # ================= TRANSITIONS =================

    def start_attempt(self, attempt_id, caller_id):
        with self._mutating(attempt_id, caller_id) as attempt:
            if attempt.attempt_status != AttemptStatus.NOT_STARTED:
                logger.warning("Rejected start of attempt %s in %s", attempt.id, attempt.status)
                raise ValidationError("Test has already been started")
            attempt.status = AttemptStatus.IN_PROGRESS.value
            attempt.started_at = self.clock()
            logger.info("Attempt %s started", attempt.id)
        return attempt

    def pause_attempt(self, attempt_id, caller_id):
        with self._mutating(attempt_id, caller_id) as attempt:
            if attempt.attempt_status != AttemptStatus.IN_PROGRESS:
                logger.warning("Rejected pause of attempt %s in %s", attempt.id, attempt.status)
                raise ValidationError("Test is not in progress")
            attempt.status = AttemptStatus.PAUSED.value
            attempt.paused_at = self.clock()
            logger.info("Attempt %s paused", attempt.id)
        return attempt

    def resume_attempt(self, attempt_id, caller_id):
        with self._mutating(attempt_id, caller_id) as attempt:
            if attempt.attempt_status != AttemptStatus.PAUSED:
                logger.warning("Rejected resume of attempt %s in %s", attempt.id, attempt.status)
                raise ValidationError("Test is not paused")
            attempt.status = AttemptStatus.IN_PROGRESS.value
            attempt.paused_at = None
            logger.info("Attempt %s resumed", attempt.id)
        return attempt

    # ================= ANSWERS =================

    @staticmethod
    def _check_accepting_answers(attempt):
        status = attempt.attempt_status
        if status == AttemptStatus.NOT_STARTED:
            raise ValidationError(MUST_START_TO_SUBMIT)
        if status == AttemptStatus.PAUSED:
            raise ValidationError(PAUSED_ON_SUBMIT)
        if status == AttemptStatus.COMPLETED:
            raise ValidationError(SUBMIT_AFTER_COMPLETION)

    def submit_answer(self, attempt_id, caller_id, question_id, answer, time_spent=0):
        """
        Record and grade one answer

        Answering the last open question completes the attempt, with the
        same scoring and progression as an explicit completion.
        """
        question_id = _parse_id(question_id, 'question ID')
        if not isinstance(answer, str):
            raise ValidationError("Answer must be a string")
        if not _is_non_negative_int(time_spent):
            raise ValidationError("Time spent must be a non-negative integer")

        with self._mutating(attempt_id, caller_id) as attempt:
            self._check_accepting_answers(attempt)

            question = attempt.question_set.get(question_id)
            if question is None:
                raise NotFoundError("Question not found in the test attempt")

            responses = attempt.response_set
            self._grade(attempt, question, responses.get(question_id), answer, time_spent)
            attempt.response_set = responses

            if responses.all_answered():
                self._finalize(attempt)
        return attempt

    def submit_all_answers(self, attempt_id, caller_id, responses, end_time=None):
        """
        Record and grade a batch of answers

        The whole batch is rejected on the first malformed entry. The
        attempt stays IN_PROGRESS until completed explicitly.
        """
        if not isinstance(responses, list) or not responses:
            raise ValidationError("No answers to submit")
        entries = []
        for item in responses:
            if not isinstance(item, dict):
                raise ValidationError(INVALID_RESPONSE)
            answer = item.get('answer')
            time_taken = item.get('time_taken')
            if item.get('question_id') is None or not isinstance(answer, str) or not answer.strip():
                raise ValidationError(INVALID_RESPONSE)
            if not _is_non_negative_int(time_taken):
                raise ValidationError(INVALID_RESPONSE)
            entries.append((_parse_id(item['question_id'], 'question ID'), answer, time_taken))

        if end_time is not None and not _is_non_negative_int(end_time):
            raise ValidationError("End time must be a non-negative integer")

        with self._mutating(attempt_id, caller_id) as attempt:
            self._check_accepting_answers(attempt)

            question_set = attempt.question_set
            seen = set()
            for question_id, _, _ in entries:
                if question_set.get(question_id) is None:
                    raise ValidationError(f"Question {question_id} is not part of this test attempt")
                if question_id in seen:
                    raise ValidationError(f"Question {question_id} appears more than once")
                seen.add(question_id)

            slots = attempt.response_set
            for question_id, answer, time_taken in entries:
                self._grade(attempt, question_set.get(question_id),
                            slots.get(question_id), answer, time_taken)
            attempt.response_set = slots

            timing = attempt.timing
            timing.end_time = end_time if end_time is not None else int(self.clock().timestamp() * 1000)
            attempt.timing = timing
            logger.info("Attempt %s received %s answers", attempt.id, len(entries))
        return attempt

    # ================= COMPLETION =================

    def complete_attempt(self, attempt_id, caller_id):
        with self._mutating(attempt_id, caller_id) as attempt:
            status = attempt.attempt_status
            if status == AttemptStatus.NOT_STARTED:
                raise ValidationError(MUST_START_TO_COMPLETE)
            if status == AttemptStatus.COMPLETED:
                raise ValidationError(ALREADY_COMPLETED)
            if status == AttemptStatus.PAUSED:
                raise ValidationError(PAUSED_ON_COMPLETE)
            result = self._finalize(attempt)
        return result

    def calculate_score(self, attempt_id, caller_id):
        """Re-grade and store the score without changing status"""
        with self._mutating(attempt_id, caller_id) as attempt:
            if attempt.attempt_status == AttemptStatus.NOT_STARTED:
                raise ValidationError("Cannot score a test that has not been started")
            responses = attempt.response_set
            summary = self.scoring.score(attempt.question_set, responses)
            attempt.response_set = responses
            attempt.score = summary.score
        return {
            'attempt_id': attempt.id,
            'score': summary.score,
            'correct_answers': summary.total_correct,
            'total_questions': summary.total_questions,
        }
