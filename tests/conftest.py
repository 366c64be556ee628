import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from examcore import create_app  # noqa: E402
from examcore.extensions import db as _db  # noqa: E402
from examcore.models import (  # noqa: E402
    TestPlan, Question, LevelConfig, Achievement, Reward,
)

STUDENT = "student-1"
PLANNER = "planner-1"
STRANGER = "someone-else"


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeSocket:
    def __init__(self):
        self.emitted = []

    def emit(self, event, payload, room=None):
        self.emitted.append((event, payload, room))

    def events(self):
        return [event for event, _, _ in self.emitted]


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def fake_socket():
    return FakeSocket()


@pytest.fixture
def engine(app, clock, fake_socket):
    engine = app.extensions["examcore"]
    engine.progression.clock = clock
    engine.execution.clock = clock
    engine.progression.notifier.socketio = fake_socket
    return engine


@pytest.fixture
def client(app, engine):
    return app.test_client()


@pytest.fixture
def levels(db):
    db.session.add_all([
        LevelConfig(level=1, xp_required=1000, perks={"unlocks": []}),
        LevelConfig(level=2, xp_required=2500, perks={"unlocks": ["custom_avatar"]}),
        LevelConfig(level=3, xp_required=4500, perks={"unlocks": ["dark_theme"]}),
    ])
    db.session.commit()


@pytest.fixture
def questions(db):
    rows = [
        Question(id=1, subject_id=10, subtopic_id=100, question_text="Capital of France?",
                 options=["Paris", "Rome", "Madrid"], correct_answer="<b>Paris</b>",
                 correct_answer_plain="Paris", is_katex=False),
        # rich form is authoritative here
        Question(id=2, subject_id=10, subtopic_id=100, question_text="2 + 2 = ?",
                 options=["3", "4"], correct_answer="4", correct_answer_plain="four",
                 is_katex=True),
        Question(id=3, subject_id=10, subtopic_id=101, question_text="H2O is commonly called?",
                 correct_answer_plain="Water", is_katex=False),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def plan(db, questions):
    plan = TestPlan(
        id=1,
        student_id=STUDENT,
        planned_by=PLANNER,
        subject_id=10,
        time_limit=1800,
        configuration={"questions": [{"question_id": q.id} for q in questions]},
    )
    db.session.add(plan)
    db.session.commit()
    return plan


@pytest.fixture
def attempt(engine, plan):
    return engine.execution.create_attempt(plan.id, STUDENT)


@pytest.fixture
def started(engine, attempt):
    return engine.execution.start_attempt(attempt.id, STUDENT)


@pytest.fixture
def achievements(db):
    rows = [
        Achievement(title="First Steps", category="Practice", points=50,
                    required_criteria={"type": "TEST_COUNT", "target": 1}),
        Achievement(title="Perfectionist", category="Performance", points=300,
                    required_criteria={"type": "SCORE", "target": 100}),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def rewards(db):
    rows = [
        Reward(title="Custom Avatar", category="Avatar", cost=500),
        Reward(title="Certificate", category="Certificate", cost=5000),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows
