"""
Persistence Store
Read/write contract the engine needs, over Flask-SQLAlchemy
"""
from contextlib import contextmanager
import logging
import threading

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from examcore.errors import ConflictError
from examcore.models import (
    TestPlan, Question, TestAttempt, AttemptStatus, StudentProgress, LevelConfig,
    SubjectMastery, Achievement, AchievementUnlock, Reward, RewardPurchase,
    ActivityLogEntry,
)

logger = logging.getLogger(__name__)


class SqlAlchemyStore:
    """
    Transactional store

    Writes on versioned rows (attempts, progress, mastery) are
    compare-and-swap: a stale version raises ConflictError at commit.
    """

    def __init__(self, db):
        self.db = db
        self._local = threading.local()

    @property
    def session(self):
        return self.db.session

    # ================= TRANSACTIONS =================

    @contextmanager
    def transaction(self):
        """
        Unit of work. Nested calls join the outermost one, which commits
        on success and rolls back on any error.
        """
        depth = getattr(self._local, 'depth', 0)
        if depth == 0:
            self._local.callbacks = []
        self._local.depth = depth + 1
        try:
            yield self
            if depth == 0:
                self.session.commit()
        except StaleDataError as exc:
            self._rollback(depth)
            logger.warning("Stale write rejected: %s", exc)
            raise ConflictError("Record was modified by a concurrent request") from exc
        except IntegrityError as exc:
            self._rollback(depth)
            logger.warning("Constraint violation rejected: %s", exc.orig)
            raise ConflictError("Write conflicts with an existing record") from exc
        except Exception:
            self._rollback(depth)
            raise
        finally:
            self._local.depth = depth

        if depth == 0:
            callbacks, self._local.callbacks = self._local.callbacks, []
            for callback in callbacks:
                callback()

    def _rollback(self, depth):
        if depth == 0:
            self.session.rollback()
            self._local.callbacks = []

    def on_commit(self, callback):
        """Run callback after the outermost transaction commits"""
        if getattr(self._local, 'depth', 0) == 0:
            callback()
            return
        self._local.callbacks.append(callback)

    def add(self, obj):
        self.session.add(obj)
        return obj

    def flush(self):
        self.session.flush()

    # ================= PLANS / QUESTIONS =================

    def get_plan(self, plan_id):
        return self.session.get(TestPlan, plan_id)

    def get_questions(self, question_ids):
        """Catalog questions keyed by id"""
        if not question_ids:
            return {}
        rows = Question.query.filter(Question.id.in_(list(question_ids))).all()
        return {q.id: q for q in rows}

    def questions_for_subtopics(self, subtopic_ids, limit):
        return Question.query.filter(
            Question.subtopic_id.in_(list(subtopic_ids))
        ).order_by(Question.id).limit(limit).all()

    # ================= ATTEMPTS =================

    def get_attempt(self, attempt_id):
        return self.session.get(TestAttempt, attempt_id)

    def latest_attempt_for_plan(self, plan_id):
        return TestAttempt.query.filter_by(
            test_plan_id=plan_id
        ).order_by(TestAttempt.id.desc()).first()

    def count_completed_attempts(self, student_id):
        return TestAttempt.query.filter_by(
            student_id=student_id,
            status=AttemptStatus.COMPLETED.value
        ).count()

    # ================= PROGRESS =================

    def get_progress(self, student_id):
        return self.session.get(StudentProgress, student_id)

    def get_level_config(self, level):
        return self.session.get(LevelConfig, level)

    def get_mastery(self, student_id, subject_id):
        return self.session.get(SubjectMastery, (student_id, subject_id))

    def list_mastery(self, student_id):
        return SubjectMastery.query.filter_by(
            student_id=student_id
        ).order_by(SubjectMastery.subject_id).all()

    # ================= ACHIEVEMENTS / REWARDS =================

    def get_achievement(self, achievement_id):
        return self.session.get(Achievement, achievement_id)

    def list_achievements(self):
        return Achievement.query.order_by(Achievement.id).all()

    def get_unlock(self, student_id, achievement_id):
        return AchievementUnlock.query.filter_by(
            student_id=student_id,
            achievement_id=achievement_id
        ).first()

    def list_unlocks(self, student_id):
        return AchievementUnlock.query.filter_by(student_id=student_id).all()

    def get_reward(self, reward_id):
        return self.session.get(Reward, reward_id)

    def list_rewards(self):
        return Reward.query.order_by(Reward.id).all()

    def get_purchase(self, student_id, reward_id):
        return RewardPurchase.query.filter_by(
            student_id=student_id,
            reward_id=reward_id
        ).first()

    def list_purchases(self, student_id):
        return RewardPurchase.query.filter_by(student_id=student_id).all()

    # ================= ACTIVITY LOG =================

    def list_activity(self, student_id, offset, limit):
        return ActivityLogEntry.query.filter_by(
            student_id=student_id
        ).order_by(
            ActivityLogEntry.created_at.desc(),
            ActivityLogEntry.id.desc()
        ).offset(offset).limit(limit).all()

    def count_activity(self, student_id):
        return self.session.query(func.count(ActivityLogEntry.id)).filter_by(
            student_id=student_id
        ).scalar() or 0
