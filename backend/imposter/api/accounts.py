from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, current_user

from imposter.accounts import AccountError, AccountStore

accounts = Blueprint('accounts', __name__)
store = AccountStore()


@accounts.errorhandler(AccountError)
def handle_account_error(err):
    return jsonify({'error': err.message}), err.status


@accounts.route('/users', methods=['POST'])
def create_user():
    data = request.get_json(silent=True) or {}
    user = store.create_user(data.get('username'), data.get('password'))
    login_user(user, remember=True)
    return jsonify({'userId': user.id, 'username': user.username}), 201


@accounts.route('/auth/sign-in', methods=['POST'])
def sign_in():
    data = request.get_json(silent=True) or {}
    if not data.get('username') or not data.get('password'):
        return jsonify({'error': 'Username and password required'}), 400
    user = store.sign_in(data['username'], data['password'])
    login_user(user, remember=True)
    return jsonify({'userId': user.id, 'username': user.username})


@accounts.route('/auth/sign-out', methods=['POST'])
def sign_out():
    if current_user.is_authenticated:
        logout_user()
    return jsonify({'success': True})


@accounts.route('/users/<int:user_id>', methods=['GET'])
def get_user(user_id):
    user = store.get_user(user_id)
    if not user:
        return jsonify({'error': 'User not found'}), 404
    return jsonify({**user.to_dict(), 'stats': store.get_user_stats(user.id)})


@accounts.route('/users/<int:user_id>/stats', methods=['GET'])
def get_stats(user_id):
    if not store.get_user(user_id):
        return jsonify({'error': 'User not found'}), 404
    return jsonify(store.get_user_stats(user_id))


@accounts.route('/leaderboard', methods=['GET'])
def leaderboard():
    return jsonify(store.get_leaderboard())
