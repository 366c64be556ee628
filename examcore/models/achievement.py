"""
Achievement Models
Shared catalog plus per-student unlocks
"""
from examcore.extensions import db
from examcore.utils.helpers import now_utc, isoformat


class Achievement(db.Model):
    """Achievement catalog entry"""
    __tablename__ = 'achievement'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50))  # Practice, Performance, Consistency, Mastery
    points = db.Column(db.Integer, nullable=False, default=0)

    # {"type": "TEST_COUNT" | "SCORE" | "STREAK" | "MASTERY", "target": n}
    required_criteria = db.Column(db.JSON, default=dict)

    def __repr__(self):
        return f'<Achievement {self.title}>'

    @property
    def criteria_type(self):
        return (self.required_criteria or {}).get('type')

    @property
    def criteria_target(self):
        return int((self.required_criteria or {}).get('target') or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'points': self.points,
            'required_criteria': self.required_criteria or {},
        }


class AchievementUnlock(db.Model):
    """Achievement unlocked by a student"""
    __tablename__ = 'achievement_unlock'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    achievement_id = db.Column(db.Integer, db.ForeignKey('achievement.id'), nullable=False)
    progress = db.Column(db.Integer, default=0)
    unlocked_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    achievement = db.relationship('Achievement')

    __table_args__ = (
        db.UniqueConstraint(
            'student_id', 'achievement_id',
            name='unique_unlock_per_student'
        ),
    )

    def __repr__(self):
        return f'<AchievementUnlock {self.achievement_id} by {self.student_id}>'

    def to_dict(self):
        return {
            'achievement_id': self.achievement_id,
            'progress': self.progress,
            'unlocked_at': isoformat(self.unlocked_at),
        }
