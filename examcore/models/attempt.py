"""
TestAttempt Model
One student's run through a test plan; question set frozen at creation
"""
import enum

from examcore.extensions import db
from examcore.records import QuestionSet, ResponseSet, AttemptTiming
from examcore.utils.helpers import now_utc, isoformat


class AttemptStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class TestAttempt(db.Model):
    """Test attempt model"""
    __tablename__ = 'test_attempt'
    # keep pytest from collecting this class
    __test__ = False

    id = db.Column(db.Integer, primary_key=True)
    test_plan_id = db.Column(db.Integer, db.ForeignKey('test_plan.id'), nullable=False, index=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=AttemptStatus.NOT_STARTED.value)
    started_at = db.Column(db.DateTime(timezone=True))
    paused_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    score = db.Column(db.Integer)

    # Serialized QuestionSet / ResponseSet / AttemptTiming
    question_data = db.Column(db.JSON, nullable=False, default=list)
    response_data = db.Column(db.JSON, nullable=False, default=list)
    timing_data = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f'<TestAttempt {self.id} plan={self.test_plan_id} {self.status}>'

    @property
    def attempt_status(self):
        return AttemptStatus(self.status)

    @property
    def question_set(self):
        return QuestionSet.from_list(self.question_data)

    @property
    def response_set(self):
        responses = ResponseSet.from_list(self.response_data)
        responses.check_matches(self.question_set)
        return responses

    @response_set.setter
    def response_set(self, responses):
        self.response_data = responses.to_list()

    @property
    def timing(self):
        return AttemptTiming.from_dict(self.timing_data)

    @timing.setter
    def timing(self, timing):
        self.timing_data = timing.to_dict()

    def to_dict(self, include_answers=False):
        """Serialize for API responses; correct answers only when asked"""
        questions = []
        for q in self.question_set:
            item = q.to_dict()
            if not include_answers:
                item.pop('correct_answer', None)
                item.pop('correct_answer_plain', None)
            questions.append(item)

        return {
            'attempt_id': self.id,
            'test_plan_id': self.test_plan_id,
            'student_id': self.student_id,
            'status': self.status,
            'started_at': isoformat(self.started_at),
            'paused_at': isoformat(self.paused_at),
            'completed_at': isoformat(self.completed_at),
            'score': self.score,
            'questions': questions,
            'responses': self.response_set.to_list(),
            'timing': self.timing.to_dict(),
        }
