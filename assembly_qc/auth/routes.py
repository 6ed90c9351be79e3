from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from assembly_qc import db as db_module
from assembly_qc.errors import ValidationError, raise_for_store_error
from assembly_qc.shifts import format_instant

auth_bp = Blueprint('auth', __name__)

DEFAULT_ROLE = 'operator'
DEFAULT_DEPARTMENT = 'General'


def _public_user(record: dict) -> dict:
    return {key: value for key, value in record.items() if key != 'password_hash'}


def _payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _set_online(user_id, online: bool, **extra) -> dict | None:
    """Flip the explicit ``is_online`` flag on a user record."""

    updated, error = db_module.update_app_user(user_id, {'is_online': online, **extra})
    raise_for_store_error(error)
    return updated


@auth_bp.route('/register', methods=['POST'])
def register():
    payload = _payload()
    username = (payload.get('username') or '').strip()
    password = payload.get('password') or ''
    full_name = (payload.get('full_name') or '').strip()
    if not username or not password or not full_name:
        raise ValidationError('Username, password and full name are required.')

    existing, error = db_module.fetch_app_user_credentials(username)
    raise_for_store_error(error)
    if existing:
        raise ValidationError('Username already exists.')

    record = {
        'username': username,
        'password_hash': generate_password_hash(password),
        'full_name': full_name,
        'role': (payload.get('role') or '').strip() or DEFAULT_ROLE,
        'department': (payload.get('department') or '').strip() or DEFAULT_DEPARTMENT,
        'employee_id': (payload.get('employee_id') or '').strip(),
        'is_active': True,
        'is_online': False,
        'created_at': format_instant(datetime.now(tz=timezone.utc)),
    }
    created, error = db_module.insert_app_user(record)
    raise_for_store_error(error)
    current_app.logger.info("Registered user %s", username)
    return jsonify({'message': 'User Created', 'user': _public_user(created)}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    payload = _payload()
    username = (payload.get('username') or '').strip()
    password = payload.get('password') or ''

    user, error = db_module.fetch_app_user_credentials(username) if username else (None, None)
    raise_for_store_error(error)
    if not user or not check_password_hash(user.get('password_hash') or '', password):
        return jsonify({'error': 'Login Failed'}), 401
    if user.get('is_active') is False:
        return jsonify({'error': 'Account Disabled'}), 403

    last_login = format_instant(datetime.now(tz=timezone.utc))
    updated = _set_online(user.get('id'), True, last_login=last_login) or {
        **user,
        'is_online': True,
        'last_login': last_login,
    }

    session['user_id'] = str(user.get('id'))
    session['username'] = user.get('username')
    session['full_name'] = user.get('full_name') or user.get('username')
    session['role'] = user.get('role') or DEFAULT_ROLE
    return jsonify({'message': 'OK', 'user': _public_user(updated)})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    user_id = session.get('user_id')
    if user_id:
        _set_online(user_id, False)
    for key in ('user_id', 'username', 'full_name', 'role'):
        session.pop(key, None)
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/get-active-users', methods=['GET'])
def get_active_users():
    users, error = db_module.fetch_active_users()
    raise_for_store_error(error)
    return jsonify(users or [])
