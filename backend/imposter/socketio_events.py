from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict

from imposter import socketio
from imposter.realtime import game_service, room_name
from imposter.services.game.errors import GameError, InvalidInput


# sid -> session id of the room this socket joined
_sid_to_session: Dict[str, str] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _session_ref(data):
    ref = (data or {}).get('game_id') or (data or {}).get('code')
    return ref or _sid_to_session.get(_get_sid())


def _round_number(data):
    value = (data or {}).get('round_number')
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        raise InvalidInput('round_number must be an integer')


def _bind(session):
    join_room(room_name(session))
    _sid_to_session[_get_sid()] = session.session_id


def _guarded(handler):
    """Report game errors to the requesting socket only, and as the ack."""
    def wrapper(data=None):
        try:
            return handler(data or {})
        except GameError as err:
            emit('error', err.to_dict())
            return err.to_dict()
    wrapper.__name__ = handler.__name__
    return wrapper


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    ref = _sid_to_session.pop(_get_sid(), None)
    if not ref:
        return
    departure = game_service().disconnect(ref, _get_sid())
    if departure is not None:
        current_app.logger.info(
            f"[disconnect] session={ref} player={departure.player.name} scheduled={departure.scheduled}"
        )


@_guarded
def handle_create_game(data):
    name = data.get('name') or data.get('playerName')
    if not name:
        raise InvalidInput('name is required')
    session, host, snapshot = game_service().create_game(
        name,
        custom=bool(data.get('custom')),
        connection_id=_get_sid(),
        account_id=data.get('account_id'),
    )
    _bind(session)
    emit('game_created', snapshot)
    return snapshot


@_guarded
def handle_join_game(data):
    code = data.get('code')
    name = data.get('name') or data.get('playerName')
    if not code or not name:
        raise InvalidInput('code and name are required')
    session, player, snapshot = game_service().join_game(
        code, name, connection_id=_get_sid(), account_id=data.get('account_id'),
    )
    _bind(session)
    emit('joined_game', snapshot)
    return snapshot


@_guarded
def handle_rejoin_game(data):
    code = data.get('code') or data.get('game_id')
    name = data.get('name') or data.get('playerName')
    if not code or not name:
        raise InvalidInput('code and name are required')
    rejoin = game_service().rejoin_game(
        code, name, connection_id=_get_sid(), claims_host=bool(data.get('is_host')),
    )
    _bind(rejoin.session)
    emit('rejoined', rejoin.snapshot)
    return rejoin.snapshot


@_guarded
def handle_start_game(data):
    return game_service().start_game(_session_ref(data), connection_id=_get_sid(), name=data.get('name'))


@_guarded
def handle_new_round(data):
    return game_service().new_round(
        _session_ref(data), round_number=_round_number(data), connection_id=_get_sid(), name=data.get('name'),
    )


@_guarded
def handle_custom_round(data):
    return game_service().custom_round(
        _session_ref(data),
        data.get('category'),
        data.get('word'),
        round_number=_round_number(data),
        connection_id=_get_sid(),
        name=data.get('name'),
    )


@_guarded
def handle_auto_round(data):
    return game_service().auto_round(
        _session_ref(data), round_number=_round_number(data), connection_id=_get_sid(), name=data.get('name'),
    )


@_guarded
def handle_start_vote(data):
    return game_service().start_vote(
        _session_ref(data), round_number=_round_number(data), connection_id=_get_sid(), name=data.get('name'),
    )


@_guarded
def handle_submit_vote(data):
    return game_service().submit_vote(
        _session_ref(data),
        accused=data.get('accused'),
        no_imposter=bool(data.get('no_imposter')),
        connection_id=_get_sid(),
        name=data.get('name'),
    )


@_guarded
def handle_reveal_imposter(data):
    snapshot = game_service().reveal(
        _session_ref(data), round_number=_round_number(data), connection_id=_get_sid(), name=data.get('name'),
    )
    emit('reveal_result', {'ok': True, **(snapshot.get('reveal') or {})})
    return snapshot


@_guarded
def handle_return_to_lobby(data):
    return game_service().return_to_lobby(_session_ref(data), connection_id=_get_sid(), name=data.get('name'))


@_guarded
def handle_leave_game(data):
    ref = _session_ref(data)
    if not ref:
        raise InvalidInput('game_id is required')
    service = game_service()
    session = service.registry.get(ref)
    departure = service.leave(ref, connection_id=_get_sid(), name=data.get('name'))
    leave_room(room_name(session))
    _sid_to_session.pop(_get_sid(), None)
    emit('left', {'code': session.room_code})
    return {'ok': True, 'removed': departure.removed}


def handle_ping(data=None):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create_game': handle_create_game,
    'join_game': handle_join_game,
    'rejoin_game': handle_rejoin_game,
    'start_game': handle_start_game,
    'new_round': handle_new_round,
    'custom_round': handle_custom_round,
    'auto_round': handle_auto_round,
    'start_vote': handle_start_vote,
    'submit_vote': handle_submit_vote,
    'reveal_imposter': handle_reveal_imposter,
    'return_to_lobby': handle_return_to_lobby,
    'leave_game': handle_leave_game,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')
    if testing:
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
