"""
Answer Evaluator
Decides whether a submitted answer matches a question's correct answer
"""
import re

_NON_ALNUM = re.compile(r'[^a-z0-9]')


def normalize_answer(answer):
    """Trim, lower-case and drop everything but ASCII letters and digits"""
    return _NON_ALNUM.sub('', (answer or '').strip().lower())


class AnswerEvaluator:
    """
    Case-, spacing- and punctuation-insensitive comparison against the
    authoritative correct-answer form. No numeric or semantic equivalence.
    """

    def evaluate(self, question, submitted_answer):
        """
        Args:
            question: QuestionSnapshot
            submitted_answer: raw answer string, may be None

        Returns:
            bool: True when the normalized forms are equal
        """
        expected = normalize_answer(question.authoritative_answer)
        return normalize_answer(submitted_answer) == expected
