"""
Progression Models
Student progress, level table and per-subject mastery
"""
from examcore.extensions import db
from examcore.utils.helpers import now_utc, isoformat


class StudentProgress(db.Model):
    """One row per student"""
    __tablename__ = 'student_progress'

    student_id = db.Column(db.String(64), primary_key=True)
    level = db.Column(db.Integer, nullable=False, default=1)
    current_xp = db.Column(db.Integer, nullable=False, default=0)
    next_level_xp = db.Column(db.Integer, nullable=False, default=1000)
    streak_days = db.Column(db.Integer, nullable=False, default=0)
    last_activity_date = db.Column(db.DateTime(timezone=True))
    total_points = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f'<StudentProgress {self.student_id} L{self.level} {self.current_xp}xp>'

    def to_dict(self):
        return {
            'student_id': self.student_id,
            'level': self.level,
            'current_xp': self.current_xp,
            'next_level_xp': self.next_level_xp,
            'streak_days': self.streak_days,
            'last_activity_date': isoformat(self.last_activity_date),
            'total_points': self.total_points,
        }


class LevelConfig(db.Model):
    """
    Level table
    xp_required is the cumulative XP a student at this level needs to
    reach the next one
    """
    __tablename__ = 'level_config'

    level = db.Column(db.Integer, primary_key=True, autoincrement=False)
    xp_required = db.Column(db.Integer, nullable=False)
    perks = db.Column(db.JSON, default=dict)  # {"unlocks": [...]}

    def __repr__(self):
        return f'<LevelConfig {self.level}: {self.xp_required}>'

    def unlocked_perks(self):
        return list((self.perks or {}).get('unlocks') or [])


class SubjectMastery(db.Model):
    """Per (student, subject) accuracy counters and cached mastery level"""
    __tablename__ = 'subject_mastery'

    student_id = db.Column(db.String(64), primary_key=True)
    subject_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    mastery_level = db.Column(db.Integer, nullable=False, default=0)
    total_questions_attempted = db.Column(db.Integer, nullable=False, default=0)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    last_test_date = db.Column(db.DateTime(timezone=True), default=now_utc)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f'<SubjectMastery {self.student_id}/{self.subject_id} L{self.mastery_level}>'

    @property
    def accuracy(self):
        if not self.total_questions_attempted:
            return 0.0
        return self.correct_answers / self.total_questions_attempted

    def to_dict(self):
        return {
            'subject_id': self.subject_id,
            'mastery_level': self.mastery_level,
            'accuracy': round(self.accuracy * 100),
            'total_attempted': self.total_questions_attempted,
            'correct_answers': self.correct_answers,
            'last_test_date': isoformat(self.last_test_date),
        }
