from datetime import datetime, timezone
from functools import wraps

from flask import Blueprint, jsonify, request, session

from assembly_qc.analytics import build_shift_dashboard
from assembly_qc.operator_stats import (
    log_event,
    operator_counts,
    reset_today,
    undo_last,
)
from assembly_qc.plans import plans_for_window, set_plan
from assembly_qc.rework import list_pending_rework, rework_history, update_rework
from assembly_qc import settings
from assembly_qc.shifts import resolve_shift_window, today_local

main_bp = Blueprint('main', __name__)


def login_required(view):
    @wraps(view)
    def wrapped_view(*args, **kwargs):
        if 'username' not in session:
            return jsonify({'ok': False, 'error': 'unauthenticated'}), 401
        return view(*args, **kwargs)

    return wrapped_view


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _json_payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _operator_from(payload: dict):
    """Return the operator for a write, defaulting to the session user."""

    return payload.get('operator_id') or payload.get('userId') or session.get('user_id')


@main_bp.route('/log-qc', methods=['POST'])
@login_required
def log_qc():
    payload = _json_payload()
    payload.setdefault('operator_id', _operator_from(payload))
    payload.setdefault('operator_name', session.get('full_name') or session.get('username'))
    event = log_event(payload, now=_now())
    return jsonify({'message': 'Saved', 'event': event}), 201


@main_bp.route('/undo-last-qc', methods=['POST'])
@login_required
def undo_last_qc():
    payload = _json_payload()
    removed = undo_last(_operator_from(payload), now=_now())
    return jsonify({'message': 'Deleted', 'deletedEntry': removed})


@main_bp.route('/reset-today', methods=['POST'])
@login_required
def reset_operator_today():
    payload = _json_payload()
    deleted = reset_today(_operator_from(payload), now=_now())
    return jsonify({'message': 'Reset Done', 'deleted': deleted})


@main_bp.route('/get-stats/<operator_id>', methods=['GET'])
@login_required
def get_operator_stats(operator_id):
    stats = operator_counts(operator_id, request.args.get('model'), now=_now())
    return jsonify(stats)


@main_bp.route('/set-plan', methods=['POST'])
@login_required
def save_plan():
    plan = set_plan(_json_payload())
    return jsonify({'message': 'Plan Saved', 'plan': plan}), 201


@main_bp.route('/get-plans', methods=['GET'])
@login_required
def get_plans():
    now = _now()
    offset = settings.offset_minutes()
    window = resolve_shift_window(
        request.args.get('date') or today_local(now, offset),
        request.args.get('shift') or 'day',
        offset_minutes=offset,
    )
    plans = plans_for_window(window, request.args.get('model'))
    return jsonify({'window': window.as_dict(), 'plans': plans})


@main_bp.route('/get-admin-dashboard', methods=['GET'])
@login_required
def get_admin_dashboard():
    """Return KPIs, defects, hourly output and racks for one shift."""

    payload = build_shift_dashboard(
        request.args.get('date') or request.args.get('start'),
        request.args.get('shift'),
        request.args.get('model'),
        now=_now(),
    )
    return jsonify(payload)


@main_bp.route('/get-rework-list', methods=['GET'])
@login_required
def get_rework_list():
    return jsonify(list_pending_rework())


@main_bp.route('/get-rework-history', methods=['GET'])
@login_required
def get_rework_history():
    rows = rework_history(
        request.args.get('start'),
        request.args.get('end'),
        now=_now(),
    )
    return jsonify(rows)


@main_bp.route('/update-rework', methods=['POST'])
@login_required
def post_update_rework():
    payload = _json_payload()
    updated = update_rework(
        payload.get('id'),
        payload.get('newStatus') or payload.get('status'),
        payload.get('inspector') or session.get('full_name') or session.get('username'),
        now=_now(),
    )
    return jsonify({'message': 'Updated', 'event': updated})
