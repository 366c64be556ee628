"""
Progress Notifier
Pushes progression events to the student's Socket.IO room after commit
"""
import logging

logger = logging.getLogger(__name__)


def student_room(student_id):
    return f'student_{student_id}'


class ProgressNotifier:
    """Emits only once the surrounding store transaction has committed"""

    def __init__(self, socketio, store):
        self.socketio = socketio
        self.store = store

    def notify(self, event, student_id, payload):
        self.store.on_commit(lambda: self._emit(event, student_id, payload))

    def _emit(self, event, student_id, payload):
        try:
            self.socketio.emit(event, payload, room=student_room(student_id))
        except Exception:
            # the transaction has already committed
            logger.exception("Failed to emit %s to %s", event, student_room(student_id))
