"""
Progression Service
Experience, levels, streaks, subject mastery, achievements and rewards.
Every XP-bearing or state-changing event appends to the activity log.
"""
import logging
import math

from examcore.errors import NotFoundError, ValidationError
from examcore.models import (
    StudentProgress, SubjectMastery, AchievementUnlock, RewardPurchase,
    ActivityLogEntry, ActivityType,
)
from examcore.services.locks import student_key
from examcore.utils.helpers import now_utc, local_date

logger = logging.getLogger(__name__)

MAX_MASTERY_LEVEL = 5
MASTERY_LEVEL_XP = 100
MAX_PAGE_SIZE = 100


def completion_xp(score):
    """XP for a completed attempt: floor(score_percentage * 10)"""
    return math.floor(score * 10)


def mastery_level(correct, attempted):
    """floor(accuracy * 5), clamped to 0..5"""
    if attempted <= 0:
        return 0
    return min((correct * MAX_MASTERY_LEVEL) // attempted, MAX_MASTERY_LEVEL)


class ProgressionService:
    """Mutations on one student are serialized on that student's lock"""

    def __init__(self, store, locks, notifier=None, default_next_level_xp=1000,
                 timezone_name='UTC', clock=now_utc):
        self.store = store
        self.locks = locks
        self.notifier = notifier
        self.default_next_level_xp = default_next_level_xp
        self.timezone_name = timezone_name
        self.clock = clock

    # ================= INTERNALS =================

    @staticmethod
    def _require_student(student_id):
        student = str(student_id).strip() if student_id is not None else ''
        if not student:
            raise ValidationError("Student ID is required")
        return student

    def _get_or_create_progress(self, student_id):
        progress = self.store.get_progress(student_id)
        if progress is None:
            first_level = self.store.get_level_config(1)
            progress = self.store.add(StudentProgress(
                student_id=student_id,
                level=1,
                current_xp=0,
                next_level_xp=first_level.xp_required if first_level else self.default_next_level_xp,
                streak_days=0,
                last_activity_date=None,
                total_points=0,
            ))
            self.store.flush()
            logger.info("Initialized progress for student %s", student_id)
        return progress

    def _notify(self, event, student_id, payload):
        if self.notifier is not None:
            self.notifier.notify(event, student_id, payload)

    def log_activity(self, student_id, activity_type, xp_earned=0, details=None):
        """Append an immutable activity entry"""
        entry = ActivityLogEntry(
            student_id=student_id,
            activity_type=activity_type,
            xp_earned=xp_earned,
            details=details,
            created_at=self.clock(),
        )
        return self.store.add(entry)

    # ================= PROGRESS =================

    def get_progress(self, student_id):
        student_id = self._require_student(student_id)
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            progress = self._get_or_create_progress(student_id)
            data = progress.to_dict()
            data['subject_mastery'] = {
                m.subject_id: m.mastery_level for m in self.store.list_mastery(student_id)
            }
        return data

    def add_xp(self, student_id, amount, source, activity_type=ActivityType.XP_GAIN, details=None):
        """
        Award XP, crediting the same number of points to the balance

        Levels up at most once per call, even when the award crosses
        more than one threshold.

        Returns:
            dict: new_xp, total_xp, level, leveled_up, xp_awarded
        """
        student_id = self._require_student(student_id)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("XP amount must be positive")

        with self.locks.hold(student_key(student_id)), self.store.transaction():
            progress = self._get_or_create_progress(student_id)
            new_xp = progress.current_xp + amount
            leveled_up = False

            if new_xp >= progress.next_level_xp:
                new_level = progress.level + 1
                level_config = self.store.get_level_config(new_level)
                if level_config is None:
                    raise ValidationError("Level configuration not found")
                progress.level = new_level
                progress.next_level_xp = level_config.xp_required
                leveled_up = True

            progress.current_xp = new_xp
            progress.total_points += amount

            self.log_activity(student_id, activity_type, amount,
                              dict(details or {}, source=source))

            result = {
                'new_xp': new_xp,
                'total_xp': new_xp,
                'level': progress.level,
                'leveled_up': leveled_up,
                'xp_awarded': amount,
            }
            self._notify('xp_awarded', student_id, result)

            if leveled_up:
                self.log_activity(student_id, ActivityType.LEVEL_UP, 0, {
                    'level': progress.level,
                    'next_level_xp': progress.next_level_xp,
                })
                self._notify('level_up', student_id, {
                    'level': progress.level,
                    'next_level_xp': progress.next_level_xp,
                })
                logger.info("Student %s reached level %s", student_id, progress.level)

        return result

    def update_streak(self, student_id):
        """
        Advance the streak when the last activity was on the previous
        calendar day (or never). Same-day calls and gaps of more than a
        day leave both the count and the last-activity date unchanged.
        """
        student_id = self._require_student(student_id)
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            progress = self._get_or_create_progress(student_id)
            now = self.clock()
            today = local_date(now, self.timezone_name)
            last_day = local_date(progress.last_activity_date, self.timezone_name)

            updated = last_day is None or (today - last_day).days == 1
            if updated:
                progress.streak_days += 1
                progress.last_activity_date = now
                self.log_activity(student_id, ActivityType.STREAK_UPDATE, 0, {
                    'streak_days': progress.streak_days,
                })

            result = {
                'streak_days': progress.streak_days,
                'streak_bonus': 0,
                'updated': updated,
            }
        return result

    # ================= MASTERY =================

    def update_subject_mastery(self, student_id, subject_id, correct):
        """
        Count one graded answer and recompute the mastery level;
        each level gained is worth 100 XP
        """
        student_id = self._require_student(student_id)
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            mastery = self.store.get_mastery(student_id, subject_id)
            if mastery is None:
                mastery = self.store.add(SubjectMastery(
                    student_id=student_id,
                    subject_id=subject_id,
                    mastery_level=0,
                    total_questions_attempted=0,
                    correct_answers=0,
                ))

            old_level = mastery.mastery_level or 0
            mastery.total_questions_attempted += 1
            if correct:
                mastery.correct_answers += 1
            mastery.mastery_level = mastery_level(
                mastery.correct_answers, mastery.total_questions_attempted
            )
            mastery.last_test_date = self.clock()

            if mastery.mastery_level > old_level:
                self.add_xp(
                    student_id,
                    (mastery.mastery_level - old_level) * MASTERY_LEVEL_XP,
                    'mastery_increase',
                    activity_type=ActivityType.MASTERY_INCREASE,
                    details={
                        'subject_id': subject_id,
                        'from_level': old_level,
                        'to_level': mastery.mastery_level,
                    },
                )

            result = mastery.to_dict()
        return result

    def get_subject_mastery(self, student_id):
        student_id = self._require_student(student_id)
        return [m.to_dict() for m in self.store.list_mastery(student_id)]

    # ================= COMPLETION =================

    def apply_completion(self, attempt, summary):
        """
        Progression effects of a completed attempt: XP, streak, activity
        entry and achievement checks. Runs inside the caller's transaction.
        """
        student_id = attempt.student_id
        xp = completion_xp(summary.score)
        details = {
            'attempt_id': attempt.id,
            'test_plan_id': attempt.test_plan_id,
            'score': summary.score,
            'correct_answers': summary.total_correct,
            'total_questions': summary.total_questions,
        }

        with self.locks.hold(student_key(student_id)), self.store.transaction():
            if xp > 0:
                award = self.add_xp(student_id, xp, 'test_completion',
                                    activity_type=ActivityType.TEST_COMPLETION,
                                    details=details)
            else:
                self._get_or_create_progress(student_id)
                self.log_activity(student_id, ActivityType.TEST_COMPLETION, 0,
                                  dict(details, source='test_completion'))
                award = None

            streak = self.update_streak(student_id)
            unlocked = self.evaluate_achievements(student_id, score=summary.score)

            result = {
                'xp_awarded': xp,
                'level': award['level'] if award else self.store.get_progress(student_id).level,
                'leveled_up': bool(award and award['leveled_up']),
                'streak_days': streak['streak_days'],
                'achievements_unlocked': unlocked,
            }
            self._notify('attempt_completed', student_id, dict(details, **result))

        return result

    # ================= ACHIEVEMENTS =================

    def _unlock(self, student_id, achievement):
        self.store.add(AchievementUnlock(
            student_id=student_id,
            achievement_id=achievement.id,
            progress=achievement.criteria_target,
            unlocked_at=self.clock(),
        ))
        details = {'achievement_id': achievement.id, 'title': achievement.title}
        if achievement.points > 0:
            self.add_xp(student_id, achievement.points, 'achievement_unlock',
                        activity_type=ActivityType.ACHIEVEMENT_UNLOCK, details=details)
        else:
            self.log_activity(student_id, ActivityType.ACHIEVEMENT_UNLOCK, 0, details)

        self._notify('achievement_unlocked', student_id, dict(details, xp_awarded=achievement.points))
        logger.info("Student %s unlocked achievement %s", student_id, achievement.id)
        return {'achievement': achievement.to_dict(), 'xp_awarded': achievement.points}

    def unlock_achievement(self, student_id, achievement_id):
        """Unlock once; a second unlock of the same achievement is rejected"""
        student_id = self._require_student(student_id)
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            achievement = self.store.get_achievement(achievement_id)
            if achievement is None:
                raise NotFoundError("Achievement not found")
            if self.store.get_unlock(student_id, achievement.id) is not None:
                raise ValidationError("Achievement already unlocked")
            self._get_or_create_progress(student_id)
            result = self._unlock(student_id, achievement)
        return result

    def _criteria_values(self, student_id, score):
        progress = self._get_or_create_progress(student_id)
        mastery = self.store.list_mastery(student_id)
        return {
            'TEST_COUNT': self.store.count_completed_attempts(student_id),
            'SCORE': score if score is not None else 0,
            'STREAK': progress.streak_days,
            'MASTERY': max((m.mastery_level for m in mastery), default=0),
        }

    def evaluate_achievements(self, student_id, score=None):
        """Unlock every not-yet-unlocked achievement whose criteria are met"""
        student_id = self._require_student(student_id)
        unlocked = []
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            values = self._criteria_values(student_id, score)
            already = {u.achievement_id for u in self.store.list_unlocks(student_id)}
            for achievement in self.store.list_achievements():
                if achievement.id in already:
                    continue
                current = values.get(achievement.criteria_type)
                if current is None or achievement.criteria_target <= 0:
                    continue
                if current >= achievement.criteria_target:
                    unlocked.append(self._unlock(student_id, achievement))
        return unlocked

    def get_achievements(self, student_id):
        student_id = self._require_student(student_id)
        unlocks = {u.achievement_id: u for u in self.store.list_unlocks(student_id)}
        items = []
        for achievement in self.store.list_achievements():
            item = achievement.to_dict()
            unlock = unlocks.get(achievement.id)
            item['unlocked_at'] = unlock.to_dict()['unlocked_at'] if unlock else None
            items.append(item)
        return items

    def get_achievement_progress(self, student_id, score=None):
        student_id = self._require_student(student_id)
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            values = self._criteria_values(student_id, score)
            unlocked = {u.achievement_id for u in self.store.list_unlocks(student_id)}
            items = [
                {
                    'id': achievement.id,
                    'progress': min(values.get(achievement.criteria_type) or 0,
                                    achievement.criteria_target),
                    'target': achievement.criteria_target,
                    'unlocked': achievement.id in unlocked,
                }
                for achievement in self.store.list_achievements()
            ]
        return {'achievements': items}

    # ================= REWARDS =================

    def get_available_rewards(self, student_id):
        student_id = self._require_student(student_id)
        purchased = {p.reward_id for p in self.store.list_purchases(student_id)}
        return [
            dict(reward.to_dict(), unlocked=reward.id in purchased)
            for reward in self.store.list_rewards()
        ]

    def purchase_reward(self, student_id, reward_id):
        """Debit the point balance and record the purchase in one transaction"""
        student_id = self._require_student(student_id)
        with self.locks.hold(student_key(student_id)), self.store.transaction():
            reward = self.store.get_reward(reward_id)
            if reward is None:
                raise NotFoundError("Reward not found")
            if self.store.get_purchase(student_id, reward.id) is not None:
                raise ValidationError("Reward already purchased")

            progress = self.store.get_progress(student_id)
            if progress is None or progress.total_points < reward.cost:
                raise ValidationError("Insufficient points")

            self.store.add(RewardPurchase(
                student_id=student_id,
                reward_id=reward.id,
                cost_paid=reward.cost,
                purchased_at=self.clock(),
            ))
            progress.total_points -= reward.cost
            new_balance = progress.total_points

            self.log_activity(student_id, ActivityType.REWARD_PURCHASE, 0, {
                'reward_id': reward.id,
                'cost': reward.cost,
                'balance': new_balance,
            })
            result = {
                'success': True,
                'new_balance': new_balance,
                'unlocked_reward': reward.to_dict(),
            }
            self._notify('reward_purchased', student_id, result)
            logger.info("Student %s purchased reward %s", student_id, reward.id)
        return result

    # ================= LEVELS =================

    def _current_level_config(self, student_id):
        progress = self.store.get_progress(student_id)
        if progress is None:
            raise NotFoundError("Student progress not found")
        level_config = self.store.get_level_config(progress.level)
        if level_config is None:
            raise NotFoundError("Level configuration not found")
        return progress, level_config

    def get_level_info(self, student_id):
        student_id = self._require_student(student_id)
        progress, level_config = self._current_level_config(student_id)
        return {
            'current_level': progress.level,
            'xp_progress': progress.current_xp,
            'xp_required': progress.next_level_xp,
            'available_perks': level_config.unlocked_perks(),
        }

    def level_up_notification(self, student_id):
        student_id = self._require_student(student_id)
        progress, level_config = self._current_level_config(student_id)
        return {
            'new_level': progress.level,
            'unlocked_rewards': level_config.unlocked_perks(),
            'xp_bonus': 0,
        }

    # ================= ACTIVITY =================

    def get_activity_log(self, student_id, page=1, limit=10):
        """Newest-first page of the activity log"""
        student_id = self._require_student(student_id)
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        total = self.store.count_activity(student_id)
        entries = self.store.list_activity(student_id, (page - 1) * limit, limit)
        return {
            'activities': [entry.to_dict() for entry in entries],
            'pagination': {
                'current_page': page,
                'total_pages': math.ceil(total / limit),
                'total_items': total,
            },
        }
