"""
Models Package
Exports all database models
"""
from examcore.models.test_plan import TestPlan
from examcore.models.question import Question
from examcore.models.attempt import TestAttempt, AttemptStatus
from examcore.models.progress import StudentProgress, LevelConfig, SubjectMastery
from examcore.models.achievement import Achievement, AchievementUnlock
from examcore.models.reward import Reward, RewardPurchase
from examcore.models.activity import ActivityLogEntry, ActivityType

__all__ = [
    'TestPlan', 'Question', 'TestAttempt', 'AttemptStatus',
    'StudentProgress', 'LevelConfig', 'SubjectMastery',
    'Achievement', 'AchievementUnlock', 'Reward', 'RewardPurchase',
    'ActivityLogEntry', 'ActivityType',
]
