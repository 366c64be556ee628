"""
Scoring Service
Re-grades every response and turns correctness into a percentage score
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class ScoreSummary:
    score: int
    total_correct: int
    total_questions: int


def percentage(correct, total):
    """round(100 * correct / total), half away from zero; 0 for no questions"""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


class ScoringService:
    """Service for scoring attempts"""

    def __init__(self, evaluator):
        self.evaluator = evaluator

    def score(self, question_set, response_set):
        """
        Recompute correctness for each response and aggregate

        Mutates is_correct on each slot of response_set.

        Returns:
            ScoreSummary
        """
        total_correct = 0
        for slot in response_set:
            question = question_set.get(slot.question_id)
            slot.is_correct = self.evaluator.evaluate(question, slot.student_answer)
            if slot.is_correct:
                total_correct += 1

        total_questions = len(question_set)
        return ScoreSummary(
            score=percentage(total_correct, total_questions),
            total_correct=total_correct,
            total_questions=total_questions,
        )
