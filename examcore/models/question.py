"""
Question Model
Catalog question with rich and plain correct-answer forms
"""
from examcore.extensions import db
from examcore.records import QuestionSnapshot


class Question(db.Model):
    """Question model"""
    __tablename__ = 'question'

    id = db.Column(db.Integer, primary_key=True)
    subject_id = db.Column(db.Integer, index=True)
    subtopic_id = db.Column(db.Integer, index=True)

    # Question content
    question_text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, default=list)

    # Correct answer: rich (KaTeX) and plain forms, is_katex picks the authoritative one
    correct_answer = db.Column(db.Text)
    correct_answer_plain = db.Column(db.Text)
    is_katex = db.Column(db.Boolean, default=False)

    difficulty_level = db.Column(db.String(20), default='MEDIUM')

    def __repr__(self):
        return f'<Question {self.id}: {self.question_text[:50]}...>'

    def snapshot(self):
        """Freeze this question for an attempt"""
        return QuestionSnapshot(
            question_id=self.id,
            prompt=self.question_text,
            options=list(self.options or []),
            correct_answer=self.correct_answer,
            correct_answer_plain=self.correct_answer_plain,
            is_rich=bool(self.is_katex),
            difficulty_level=self.difficulty_level,
            subject_id=self.subject_id,
            subtopic_id=self.subtopic_id,
        )
