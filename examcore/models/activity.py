"""
ActivityLogEntry Model
Append-only audit trail of progression events
"""
from examcore.extensions import db
from examcore.utils.helpers import now_utc, isoformat


class ActivityType:
    XP_GAIN = 'XP_GAIN'
    TEST_COMPLETION = 'TEST_COMPLETION'
    MASTERY_INCREASE = 'MASTERY_INCREASE'
    ACHIEVEMENT_UNLOCK = 'ACHIEVEMENT_UNLOCK'
    LEVEL_UP = 'LEVEL_UP'
    STREAK_UPDATE = 'STREAK_UPDATE'
    REWARD_PURCHASE = 'REWARD_PURCHASE'


class ActivityLogEntry(db.Model):
    """Activity log entry; rows are never updated"""
    __tablename__ = 'activity_log'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    activity_type = db.Column(db.String(40), nullable=False)
    xp_earned = db.Column(db.Integer, nullable=False, default=0)
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc, index=True)

    def __repr__(self):
        return f'<ActivityLogEntry {self.activity_type} +{self.xp_earned} for {self.student_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.activity_type,
            'xp_earned': self.xp_earned,
            'details': self.details,
            'timestamp': isoformat(self.created_at),
        }
