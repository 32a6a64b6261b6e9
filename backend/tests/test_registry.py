import random

import pytest

from imposter.services.game.errors import RoomNotFound
from imposter.services.game.registry import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, SessionRegistry, generate_room_code


def test_room_codes_use_unambiguous_alphabet():
    rng = random.Random(1)
    for _ in range(200):
        code = generate_room_code(rng)
        assert len(code) == ROOM_CODE_LENGTH
        assert set(code) <= set(ROOM_CODE_ALPHABET)
        assert not set(code) & set('01IO')


def test_thousand_sessions_get_unique_codes(registry):
    codes = {registry.create(f'Host{i}').room_code for i in range(1000)}
    assert len(codes) == 1000
    assert len(registry) == 1000


def test_code_collision_is_retried():
    codes = iter(['AAAAAA', 'AAAAAA', 'AAAAAA', 'BBBBBB'])
    registry = SessionRegistry(code_factory=lambda: next(codes))
    first = registry.create('Ann')
    second = registry.create('Ben')
    assert (first.room_code, second.room_code) == ('AAAAAA', 'BBBBBB')


def test_find_by_code_any_case_or_session_id(registry):
    session = registry.create('Host')
    assert registry.find(session.room_code.lower()) is session
    assert registry.find(f'  {session.room_code} ') is session
    assert registry.find(session.session_id) is session
    assert registry.find('ZZZZZZ') is None
    assert registry.find(None) is None


def test_get_unknown_raises(registry):
    with pytest.raises(RoomNotFound) as exc:
        registry.get('NOPE42')
    assert exc.value.status == 404
    assert exc.value.to_dict()['code'] == 'room_not_found'


def test_remove_frees_the_code(registry):
    session = registry.create('Host')
    registry.remove(session)
    assert registry.find(session.room_code) is None
    assert len(registry) == 0


def test_sweep_drops_abandoned_sessions(registry, clock):
    live = registry.create('Live', connection_id='sid-live')
    idle = registry.create('Idle', connection_id='sid-idle')
    idle.join('Other')
    for player in list(idle.players):
        idle.disconnect(player.player_id)

    clock.advance(31)
    # Lobby grace expired: both reaped, session is empty
    dropped = registry.sweep(abandoned_after_sec=900)
    assert dropped == [idle]
    assert registry.find(idle.room_code) is None
    assert registry.find(live.room_code) is live


def test_sweep_waits_for_abandoned_timeout_mid_game(registry, clock):
    session = registry.create('Host', connection_id='sid-h')
    for name in ('Bob', 'Cara', 'Dan'):
        session.join(name, connection_id=f'sid-{name}')
    session.start(session.host_id)
    for player in list(session.players):
        session.disconnect(player.player_id)

    clock.advance(600)
    assert registry.sweep(abandoned_after_sec=900) == []
    clock.advance(301)
    assert registry.sweep(abandoned_after_sec=900) == [session]
    assert len(registry) == 0
