"""
Engine Wiring
Builds the execution and progression components for one app
"""
from dataclasses import dataclass

from flask import current_app

from examcore.extensions import db, socketio
from examcore.services.access_guard import AccessGuard
from examcore.services.answer_evaluator import AnswerEvaluator
from examcore.services.execution_service import ExecutionService
from examcore.services.locks import KeyedLocks
from examcore.services.notifier import ProgressNotifier
from examcore.services.progression_service import ProgressionService
from examcore.services.scoring_service import ScoringService
from examcore.store import SqlAlchemyStore


@dataclass
class Engine:
    store: SqlAlchemyStore
    locks: KeyedLocks
    guard: AccessGuard
    progression: ProgressionService
    execution: ExecutionService


def build_engine(app, relationships=None):
    """Construct every component from the app's configuration"""
    store = SqlAlchemyStore(db)
    locks = KeyedLocks(timeout=app.config['LOCK_TIMEOUT_SECONDS'])
    guard = AccessGuard(relationships)
    evaluator = AnswerEvaluator()

    progression = ProgressionService(
        store,
        locks,
        notifier=ProgressNotifier(socketio, store),
        default_next_level_xp=app.config['DEFAULT_NEXT_LEVEL_XP'],
        timezone_name=app.config['TIMEZONE'],
    )
    execution = ExecutionService(
        store,
        guard,
        evaluator,
        ScoringService(evaluator),
        progression,
        locks,
    )
    return Engine(store=store, locks=locks, guard=guard,
                  progression=progression, execution=execution)


def get_engine():
    return current_app.extensions['examcore']
