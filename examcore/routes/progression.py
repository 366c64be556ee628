"""
Progression Routes
XP, streaks, mastery, achievements, rewards and activity for the caller
"""
from flask import Blueprint, current_app, g, jsonify, request

from examcore.errors import ValidationError
from examcore.services.engine import get_engine
from examcore.utils import require_caller

progression_bp = Blueprint('progression', __name__)


@progression_bp.route('/progress')
@require_caller
def get_progress():
    return jsonify(get_engine().progression.get_progress(g.caller_id))


@progression_bp.route('/xp', methods=['POST'])
@require_caller
def add_xp():
    """Admin/internal hook: credits XP to the caller with no further checks.

    Points buy rewards, so this route must sit behind a gateway that only
    lets trusted services through.

    Body: {"amount": 50, "source": "daily_bonus"}
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    result = get_engine().progression.add_xp(
        g.caller_id,
        data.get('amount'),
        data.get('source') or 'manual',
    )
    return jsonify(result)


@progression_bp.route('/streak', methods=['POST'])
@require_caller
def update_streak():
    return jsonify(get_engine().progression.update_streak(g.caller_id))


@progression_bp.route('/mastery')
@require_caller
def get_subject_mastery():
    return jsonify({'subjects': get_engine().progression.get_subject_mastery(g.caller_id)})


@progression_bp.route('/achievements')
@require_caller
def get_achievements():
    return jsonify({'achievements': get_engine().progression.get_achievements(g.caller_id)})


@progression_bp.route('/achievements/progress')
@require_caller
def get_achievement_progress():
    return jsonify(get_engine().progression.get_achievement_progress(g.caller_id))


@progression_bp.route('/achievements/<int:achievement_id>/unlock', methods=['POST'])
@require_caller
def unlock_achievement(achievement_id):
    """Admin/internal hook: unlocks an achievement and credits its points.

    Exposed for trusted services only; see add_xp.
    """
    return jsonify(get_engine().progression.unlock_achievement(g.caller_id, achievement_id))


@progression_bp.route('/rewards')
@require_caller
def get_available_rewards():
    return jsonify({'rewards': get_engine().progression.get_available_rewards(g.caller_id)})


@progression_bp.route('/rewards/<int:reward_id>/purchase', methods=['POST'])
@require_caller
def purchase_reward(reward_id):
    return jsonify(get_engine().progression.purchase_reward(g.caller_id, reward_id))


@progression_bp.route('/levels')
@require_caller
def get_level_info():
    return jsonify(get_engine().progression.get_level_info(g.caller_id))


@progression_bp.route('/levels/up', methods=['POST'])
@require_caller
def level_up_notification():
    return jsonify(get_engine().progression.level_up_notification(g.caller_id))


@progression_bp.route('/activity')
@require_caller
def get_activity_log():
    """Query: ?page=1&limit=10"""
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', current_app.config['ACTIVITY_PAGE_SIZE'], type=int)
    return jsonify(get_engine().progression.get_activity_log(g.caller_id, page, limit))
