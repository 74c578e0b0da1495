from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, current_user
import hmac
from jackpot.errors import InsufficientBalance, PersistenceFailure, UnknownUser
from jackpot.room import get_room

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the jackpot room!'})


@main.route('/init', methods=['GET'])
def init_user():
    """
    Looks up the visitor's user, or creates one with the starting balance
    and a fresh redemption secret on first contact.
    """
    ledger = get_room().ledger
    known_id = current_user.get_id() if current_user.is_authenticated else None
    user, first_time = ledger.create_if_absent(known_id)
    if first_time:
        login_user(user, remember=True)
        current_app.logger.info(f"[init] new user={user.id} balance={user.balance}")
    payload = user.to_dict()
    payload['firstTime'] = first_time
    return jsonify(payload)


def _request_token(data):
    auth = request.headers.get('Authorization', '')
    if auth.startswith('Bearer '):
        return auth[len('Bearer '):].strip()
    token = data.get('token')
    return token if isinstance(token, str) else ''


def _parse_amount(value):
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(value)
    return int(value)


@main.route('/charge', methods=['POST'])
def charge():
    """
    Admin adjustment of a user's balance by a signed integer amount.
    """
    data = request.get_json(silent=True) or {}
    expected = current_app.config.get('ADMIN_TOKEN') or ''
    if not expected or not hmac.compare_digest(_request_token(data).encode(), expected.encode()):
        return jsonify({'error': 'Invalid token'}), 401

    user_id = data.get('userId')
    try:
        amount = _parse_amount(data.get('amount'))
    except (TypeError, ValueError):
        return jsonify({'error': 'Amount must be an integer'}), 400

    ledger = get_room().ledger
    try:
        balance = ledger.adjust(user_id, amount, floor=0)
        ledger.persist()
    except UnknownUser:
        ledger.discard()
        return jsonify({'error': 'User not found'}), 400
    except InsufficientBalance:
        ledger.discard()
        return jsonify({'error': 'Balance cannot go negative'}), 400
    except PersistenceFailure as exc:
        # Kept by the ledger and written with the next successful commit
        current_app.logger.error(f"[charge] persist failed user={user_id} error={exc.message}")
        return jsonify({'success': True, 'balance': balance, 'persisted': False}), 202

    current_app.logger.info(f"[charge] user={user_id} amount={amount} balance={balance}")
    return jsonify({'success': True, 'balance': balance})


@main.route('/round', methods=['GET'])
def round_state():
    return jsonify(get_room().coordinator.snapshot())
