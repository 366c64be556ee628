"""
Socket.IO Event Handlers
Students (and their guardians) subscribe to live progression events
"""
import logging

from flask import request
from flask_socketio import emit, join_room, leave_room

from examcore.extensions import socketio
from examcore.services.engine import get_engine
from examcore.services.notifier import student_room
from examcore.utils.helpers import get_caller_id

logger = logging.getLogger(__name__)


def _may_watch(caller_id, student_id):
    if not caller_id:
        return False
    if caller_id == student_id:
        return True
    return get_engine().guard.relationships.is_guardian_of(caller_id, student_id)


def register_socket_events():
    """Register all Socket.IO event handlers"""

    @socketio.on('join_progress')
    def join_progress(data):
        """Join the room that receives a student's progression events"""
        student_id = str((data or {}).get('student_id') or '').strip()
        caller_id = get_caller_id()

        if not student_id or not _may_watch(caller_id, student_id):
            logger.warning("Socket %s refused room for student %r", request.sid, student_id)
            emit('progress_error', {'message': 'You are not authorized to follow this student'})
            return

        join_room(student_room(student_id))
        logger.debug("Socket %s joined %s", request.sid, student_room(student_id))
        emit('progress_joined', {'room': student_room(student_id)})

    @socketio.on('leave_progress')
    def leave_progress(data):
        student_id = str((data or {}).get('student_id') or '').strip()
        if student_id:
            leave_room(student_room(student_id))
