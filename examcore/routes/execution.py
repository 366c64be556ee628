"""
Execution Routes
JSON API over the attempt state machine
"""
from flask import Blueprint, g, jsonify, request

from examcore.errors import ValidationError
from examcore.services.engine import get_engine
from examcore.utils import require_caller

execution_bp = Blueprint('execution', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@execution_bp.route('/plans/<plan_id>/attempts', methods=['POST'])
@require_caller
def create_attempt(plan_id):
    """Create (or return the pending) attempt for a test plan"""
    attempt = get_engine().execution.create_attempt(plan_id, g.caller_id)
    return jsonify(attempt.to_dict()), 201


@execution_bp.route('/attempts/<attempt_id>')
@require_caller
def get_attempt(attempt_id):
    attempt = get_engine().execution.get_attempt(attempt_id, g.caller_id)
    return jsonify(attempt.to_dict())


@execution_bp.route('/attempts/<attempt_id>/start', methods=['POST'])
@require_caller
def start_attempt(attempt_id):
    attempt = get_engine().execution.start_attempt(attempt_id, g.caller_id)
    return jsonify(attempt.to_dict())


@execution_bp.route('/attempts/<attempt_id>/pause', methods=['POST'])
@require_caller
def pause_attempt(attempt_id):
    attempt = get_engine().execution.pause_attempt(attempt_id, g.caller_id)
    return jsonify(attempt.to_dict())


@execution_bp.route('/attempts/<attempt_id>/resume', methods=['POST'])
@require_caller
def resume_attempt(attempt_id):
    attempt = get_engine().execution.resume_attempt(attempt_id, g.caller_id)
    return jsonify(attempt.to_dict())


@execution_bp.route('/attempts/<attempt_id>/answers', methods=['POST'])
@require_caller
def submit_answer(attempt_id):
    """
    Submit one answer
    Body: {"question_id": 1, "answer": "...", "time_spent": 12}
    """
    data = _json_body()
    attempt = get_engine().execution.submit_answer(
        attempt_id,
        g.caller_id,
        data.get('question_id'),
        data.get('answer'),
        data.get('time_spent', 0),
    )
    return jsonify(attempt.to_dict())


@execution_bp.route('/attempts/<attempt_id>/submit-all', methods=['POST'])
@require_caller
def submit_all_answers(attempt_id):
    """
    Submit a batch of answers
    Body: {"end_time": 1700000000000,
           "responses": [{"question_id": 1, "answer": "...", "time_taken": 12}]}
    """
    data = _json_body()
    attempt = get_engine().execution.submit_all_answers(
        attempt_id,
        g.caller_id,
        data.get('responses'),
        end_time=data.get('end_time'),
    )
    return jsonify(attempt.to_dict())


@execution_bp.route('/attempts/<attempt_id>/complete', methods=['POST'])
@require_caller
def complete_attempt(attempt_id):
    result = get_engine().execution.complete_attempt(attempt_id, g.caller_id)
    return jsonify(result.to_dict())


@execution_bp.route('/attempts/<attempt_id>/score', methods=['POST'])
@require_caller
def calculate_score(attempt_id):
    return jsonify(get_engine().execution.calculate_score(attempt_id, g.caller_id))


@execution_bp.route('/attempts/<attempt_id>/results')
@require_caller
def get_results(attempt_id):
    return jsonify(get_engine().execution.get_results(attempt_id, g.caller_id))
