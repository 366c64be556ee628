"""
Attempt Payload Records
Typed question/response sets; JSON only at the model boundary
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from examcore.errors import DataIntegrityError


@dataclass(frozen=True)
class QuestionSnapshot:
    """A catalog question as frozen into an attempt"""
    question_id: int
    prompt: str
    options: List[Any] = field(default_factory=list)
    correct_answer: Optional[str] = None
    correct_answer_plain: Optional[str] = None
    is_rich: bool = False
    difficulty_level: Optional[str] = None
    subject_id: Optional[int] = None
    subtopic_id: Optional[int] = None

    @property
    def authoritative_answer(self):
        """Correct answer in the representation the question marks authoritative"""
        if self.is_rich:
            return self.correct_answer or self.correct_answer_plain or ""
        return self.correct_answer_plain or self.correct_answer or ""

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(
                question_id=int(data["question_id"]),
                prompt=data.get("prompt") or "",
                options=list(data.get("options") or []),
                correct_answer=data.get("correct_answer"),
                correct_answer_plain=data.get("correct_answer_plain"),
                is_rich=bool(data.get("is_rich", False)),
                difficulty_level=data.get("difficulty_level"),
                subject_id=data.get("subject_id"),
                subtopic_id=data.get("subtopic_id"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DataIntegrityError(f"Malformed question snapshot: {exc}") from exc

    def to_dict(self):
        return asdict(self)


@dataclass
class ResponseSlot:
    """Answer state for one question of an attempt"""
    question_id: int
    student_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    time_spent: int = 0

    @property
    def answered(self):
        return self.student_answer is not None

    @classmethod
    def from_dict(cls, data):
        try:
            time_spent = int(data.get("time_spent") or 0)
            question_id = int(data["question_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise DataIntegrityError(f"Malformed response slot: {exc}") from exc
        if time_spent < 0:
            raise DataIntegrityError(f"Negative time spent stored for question {question_id}")
        return cls(
            question_id=question_id,
            student_answer=data.get("student_answer"),
            is_correct=data.get("is_correct"),
            time_spent=time_spent,
        )

    def to_dict(self):
        return asdict(self)


class QuestionSet:
    """Ordered, immutable collection of question snapshots"""

    def __init__(self, questions):
        self._questions = tuple(questions)
        self._by_id = {q.question_id: q for q in self._questions}
        if len(self._by_id) != len(self._questions):
            raise DataIntegrityError("Question set contains duplicate question ids")

    def __iter__(self):
        return iter(self._questions)

    def __len__(self):
        return len(self._questions)

    def get(self, question_id) -> Optional[QuestionSnapshot]:
        return self._by_id.get(question_id)

    def ids(self):
        return [q.question_id for q in self._questions]

    @classmethod
    def from_list(cls, raw):
        if not isinstance(raw, list):
            raise DataIntegrityError("Question set must be a list")
        return cls(QuestionSnapshot.from_dict(item) for item in raw)

    def to_list(self):
        return [q.to_dict() for q in self._questions]


class ResponseSet:
    """One response slot per question, addressed by question id"""

    def __init__(self, slots):
        self._slots: Dict[int, ResponseSlot] = {}
        for slot in slots:
            if slot.question_id in self._slots:
                raise DataIntegrityError(
                    f"Duplicate response slot for question {slot.question_id}"
                )
            self._slots[slot.question_id] = slot

    @classmethod
    def empty_for(cls, question_set):
        return cls(ResponseSlot(question_id=qid) for qid in question_set.ids())

    @classmethod
    def from_list(cls, raw):
        if not isinstance(raw, list):
            raise DataIntegrityError("Response set must be a list")
        return cls(ResponseSlot.from_dict(item) for item in raw)

    def to_list(self):
        return [slot.to_dict() for slot in self._slots.values()]

    def __iter__(self):
        return iter(self._slots.values())

    def __len__(self):
        return len(self._slots)

    def get(self, question_id) -> Optional[ResponseSlot]:
        return self._slots.get(question_id)

    def all_answered(self):
        return all(slot.answered for slot in self._slots.values())

    def check_matches(self, question_set):
        """Raise if the slots do not line up one-to-one with the question set"""
        if set(self._slots) != set(question_set.ids()):
            raise DataIntegrityError("Response set does not match the question set")


@dataclass
class AttemptTiming:
    time_allowed: Optional[int] = None
    end_time: Optional[int] = None

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(time_allowed=data.get("time_allowed"), end_time=data.get("end_time"))

    def to_dict(self):
        return asdict(self)
