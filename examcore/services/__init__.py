"""
Services Package
"""
from examcore.services.access_guard import AccessGuard, RelationshipDirectory
from examcore.services.answer_evaluator import AnswerEvaluator, normalize_answer
from examcore.services.scoring_service import ScoringService, ScoreSummary
from examcore.services.progression_service import ProgressionService
from examcore.services.execution_service import ExecutionService, CompletionResult
from examcore.services.locks import KeyedLocks
from examcore.services.notifier import ProgressNotifier
from examcore.services.engine import Engine, build_engine, get_engine

__all__ = [
    'AccessGuard', 'RelationshipDirectory', 'AnswerEvaluator', 'normalize_answer',
    'ScoringService', 'ScoreSummary', 'ProgressionService', 'ExecutionService',
    'CompletionResult', 'KeyedLocks', 'ProgressNotifier', 'Engine',
    'build_engine', 'get_engine',
]
