from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from imposter.realtime import game_service
from imposter.services.game.errors import GameError, InvalidInput


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(err):
    return jsonify(err.to_dict()), err.status


def _payload():
    return request.get_json(silent=True) or {}


def _account_id(data):
    if current_user.is_authenticated:
        return current_user.id
    account_id = data.get('account_id')
    try:
        return int(account_id) if account_id is not None else None
    except (TypeError, ValueError):
        return None


def _round_number(data):
    value = data.get('round_number')
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        raise InvalidInput('round_number must be an integer')


def _require(data, *keys):
    missing = [k for k in keys if not data.get(k)]
    if missing:
        raise InvalidInput(f"Missing {', '.join(missing)}")


@games.route('/create', methods=['POST'])
def create_game():
    data = _payload()
    _require(data, 'name')
    session, host, snapshot = game_service().create_game(
        data['name'],
        custom=bool(data.get('custom')),
        account_id=_account_id(data),
    )
    current_app.logger.info(f"[http-create] code={session.room_code} host={host.name}")
    return jsonify(snapshot), 201


@games.route('/join', methods=['POST'])
def join_game():
    data = _payload()
    _require(data, 'code', 'name')
    _, _, snapshot = game_service().join_game(data['code'], data['name'], account_id=_account_id(data))
    return jsonify(snapshot), 201


@games.route('/rejoin', methods=['POST'])
def rejoin_game():
    data = _payload()
    _require(data, 'code', 'name')
    rejoin = game_service().rejoin_game(data['code'], data['name'], claims_host=bool(data.get('is_host')))
    return jsonify(rejoin.snapshot)


@games.route('/<string:ref>/state', methods=['GET'])
def get_game_state(ref):
    name = request.args.get('name')
    if not name:
        raise InvalidInput('Missing name')
    return jsonify(game_service().state(ref, name=name))


@games.route('/<string:ref>/start', methods=['POST'])
def start_game(ref):
    data = _payload()
    return jsonify(game_service().start_game(ref, name=data.get('name')))


@games.route('/<string:ref>/new-round', methods=['POST'])
def new_round(ref):
    data = _payload()
    return jsonify(game_service().new_round(ref, round_number=_round_number(data), name=data.get('name')))


@games.route('/<string:ref>/custom-round', methods=['POST'])
def custom_round(ref):
    data = _payload()
    snapshot = game_service().custom_round(
        ref,
        data.get('category'),
        data.get('word'),
        round_number=_round_number(data),
        name=data.get('name'),
    )
    return jsonify(snapshot)


@games.route('/<string:ref>/auto-round', methods=['POST'])
def auto_round(ref):
    data = _payload()
    return jsonify(game_service().auto_round(ref, round_number=_round_number(data), name=data.get('name')))


@games.route('/<string:ref>/start-vote', methods=['POST'])
def start_vote(ref):
    data = _payload()
    return jsonify(game_service().start_vote(ref, round_number=_round_number(data), name=data.get('name')))


@games.route('/<string:ref>/vote', methods=['POST'])
def submit_vote(ref):
    data = _payload()
    snapshot = game_service().submit_vote(
        ref,
        accused=data.get('accused'),
        no_imposter=bool(data.get('no_imposter')),
        name=data.get('name'),
    )
    return jsonify(snapshot)


@games.route('/<string:ref>/reveal', methods=['POST'])
def reveal(ref):
    data = _payload()
    return jsonify(game_service().reveal(ref, round_number=_round_number(data), name=data.get('name')))


@games.route('/<string:ref>/lobby', methods=['POST'])
def return_to_lobby(ref):
    data = _payload()
    return jsonify(game_service().return_to_lobby(ref, name=data.get('name')))


@games.route('/<string:ref>/leave', methods=['POST'])
def leave_game(ref):
    data = _payload()
    departure = game_service().leave(ref, name=data.get('name'))
    return jsonify({'ok': True, 'removed': departure.removed, 'newHostId': departure.new_host_id})
