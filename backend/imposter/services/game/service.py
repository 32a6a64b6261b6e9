"""Transport-agnostic game operations.

Socket handlers and HTTP routes both call ``GameService``; it resolves the
session and the acting player, applies the session operation under the
session lock, and fans out notifications through the injected notifier.
A call that turns out to be a duplicate (session version unchanged) is
answered with current state and broadcasts nothing.
"""
import logging
from typing import Callable, Iterable, Optional

from .errors import GameError, InternalError, InvalidVote, PlayerNotFound
from .reconnect import ReconnectCoordinator
from .registry import SessionRegistry
from .rounds import Round
from .session import GameSession, Phase, Player, RoundOutcome
from .tally import Vote


logger = logging.getLogger(__name__)


class NullNotifier:
    """Notifier that drops everything; used when no transport is attached."""

    def to_room(self, session, event, payload):
        pass

    def to_player(self, player, event, payload):
        pass


def _inline(fn, *args):
    fn(*args)


class GameService:
    def __init__(
        self,
        registry: SessionRegistry,
        account_store=None,
        notifier=None,
        background: Callable = _inline,
        later: Callable = None,
        abandoned_after_sec: float = 900.0,
    ):
        self.registry = registry
        self.accounts = account_store
        self.notifier = notifier or NullNotifier()
        self.background = background
        self.later = later
        self.abandoned_after_sec = abandoned_after_sec
        self.reconnects = ReconnectCoordinator(registry)

    # ---- helpers ----

    def _actor(self, session: GameSession, name=None, connection_id=None) -> Player:
        if connection_id is not None:
            try:
                return session.player_by_connection(connection_id)
            except PlayerNotFound:
                if not name:
                    raise
        return session.player_by_name(name)

    def _players_payload(self, session: GameSession):
        return {'players': [p.to_dict() for p in session.players], 'hostId': session.host_id}

    def _deal(self, session: GameSession, round_: Round, event: str):
        """Send each player their own assignment, then announce the round."""
        total = len(round_.turn_order)
        for player in session.players:
            assignment = round_.assignment_for(player.player_id)
            if assignment is not None:
                self.notifier.to_player(player, 'your_word', assignment.to_dict(total_players=total))
            elif session.is_host(player.player_id):
                self.notifier.to_player(player, 'host_round', {
                    'category': round_.category,
                    'word': round_.word,
                    'totalPlayers': total,
                })
        self.notifier.to_room(session, event, {
            **self._players_payload(session),
            'turnOrder': session.turn_order_names(),
            'roundNumber': session.round_number,
        })

    def _announce_round(self, session: GameSession, round_: Optional[Round], event: str):
        if session.phase == Phase.SETUP:
            self.notifier.to_room(session, 'needs_setup', {
                **self._players_payload(session),
                'roundNumber': session.round_number,
            })
        elif round_ is not None:
            self._deal(session, round_, event)

    def _record_outcomes(self, outcomes: Iterable[RoundOutcome]):
        if self.accounts is None:
            return
        for outcome in outcomes:
            if outcome.account_id is None:
                continue
            try:
                self.accounts.record_round_result(
                    outcome.account_id,
                    outcome.was_imposter,
                    outcome.won,
                    outcome.vote_correct,
                )
            except Exception:
                logger.exception(f"[stats] failed to record round result for account={outcome.account_id}")

    def _schedule_reap(self, session: GameSession):
        if self.later is None:
            return
        self.later(session.rules.lobby_leave_grace_sec, self.reap, session.session_id)

    # ---- lobby ----

    def create_game(self, host_name, custom=False, connection_id=None, account_id=None):
        self.sweep()
        session = self.registry.create(host_name, custom=custom, connection_id=connection_id, account_id=account_id)
        host = session.host
        return session, host, session.snapshot(host.player_id)

    def join_game(self, ref, name, connection_id=None, account_id=None):
        session = self.registry.get(ref)
        with session.lock:
            player = session.join(name, connection_id=connection_id, account_id=account_id)
            self.notifier.to_room(session, 'player_joined', self._players_payload(session))
            return session, player, session.snapshot(player.player_id)

    def rejoin_game(self, ref, name, connection_id=None, claims_host=False):
        rejoin = self.reconnects.rejoin(ref, name, connection_id=connection_id, claims_host=claims_host)
        session = rejoin.session
        with session.lock:
            self.notifier.to_room(session, 'player_joined', self._players_payload(session))
            if rejoin.became_host:
                self.notifier.to_room(session, 'new_host', {'hostId': session.host_id, 'hostName': rejoin.player.name})
        return rejoin

    def state(self, ref, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            return session.snapshot(self._actor(session, name, connection_id).player_id)

    def start_game(self, ref, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            round_ = session.start(actor.player_id)
            if session.version != before:
                self._announce_round(session, round_, 'game_started')
            return session.snapshot(actor.player_id)

    def return_to_lobby(self, ref, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            departing = session.return_to_lobby(actor.player_id)
            if session.version != before:
                self.notifier.to_room(session, 'returned_to_lobby', self._players_payload(session))
            snapshot = session.snapshot(actor.player_id)
        if departing:
            self._schedule_reap(session)
        return snapshot

    # ---- rounds ----

    def new_round(self, ref, round_number=None, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            round_ = session.new_round(actor.player_id, round_number=round_number)
            if session.version != before:
                self._announce_round(session, round_, 'round_started')
            return session.snapshot(actor.player_id)

    def custom_round(self, ref, category, word, round_number=None, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            round_ = session.setup_custom_round(actor.player_id, category, word, round_number=round_number)
            if session.version != before:
                self._deal(session, round_, 'round_started')
            return session.snapshot(actor.player_id)

    def auto_round(self, ref, round_number=None, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            round_ = session.auto_round(actor.player_id, round_number=round_number)
            if session.version != before:
                self._deal(session, round_, 'round_started')
            return session.snapshot(actor.player_id)

    # ---- voting ----

    def start_vote(self, ref, round_number=None, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            session.start_vote(actor.player_id, round_number=round_number)
            if session.version != before:
                self.notifier.to_room(session, 'vote_started', {
                    'roundNumber': session.round_number,
                    'votedCount': 0,
                    'totalVoters': session.voter_count,
                })
            return session.snapshot(actor.player_id)

    def submit_vote(self, ref, accused=None, no_imposter=False, name=None, connection_id=None):
        session = self.registry.get(ref)
        if no_imposter:
            vote = Vote.nobody()
        else:
            if isinstance(accused, str):
                accused = [accused]
            if not isinstance(accused, (list, tuple, set)):
                raise InvalidVote('Pick at least one player, or vote no imposter')
            vote = Vote.accuse(*[str(a) for a in accused])
        with session.lock:
            actor = self._actor(session, name, connection_id)
            session.submit_vote(actor.player_id, vote)
            self.notifier.to_room(session, 'vote_update', {
                'votedCount': session.voted_count,
                'totalVoters': session.voter_count,
            })
            return session.snapshot(actor.player_id)

    def reveal(self, ref, round_number=None, name=None, connection_id=None):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            before = session.version
            try:
                result = session.reveal(actor.player_id, round_number=round_number)
            except GameError:
                raise
            except Exception:
                logger.exception(f"[reveal] unexpected failure code={session.room_code}")
                raise InternalError()
            if session.version != before:
                self.notifier.to_room(session, 'imposter_revealed', result.to_dict())
                self.background(self._record_outcomes, list(session.last_outcomes))
            snapshot = session.snapshot(actor.player_id)
            return snapshot

    # ---- presence ----

    def leave(self, ref, name=None, connection_id=None, explicit=True):
        session = self.registry.get(ref)
        with session.lock:
            actor = self._actor(session, name, connection_id)
            departure = session.disconnect(actor.player_id, explicit=explicit)
            if departure.removed or departure.new_host_id or not explicit:
                self.notifier.to_room(session, 'player_left', self._players_payload(session))
            if departure.new_host_id:
                self.notifier.to_room(session, 'new_host', {
                    'hostId': departure.new_host_id,
                    'hostName': session.host.name,
                })
        if departure.scheduled:
            self._schedule_reap(session)
        if departure.empty:
            self.registry.remove_if_empty(session)
        return departure

    def disconnect(self, ref, connection_id):
        """Transport dropped; ignore handles that were already replaced."""
        session = self.registry.find(ref)
        if session is None:
            return None
        try:
            session.player_by_connection(connection_id)
        except PlayerNotFound:
            return None
        return self.leave(ref, connection_id=connection_id, explicit=False)

    def reap(self, session_id):
        session = self.registry.find(session_id)
        if session is None:
            return
        with session.lock:
            removed = session.reap_departed()
            for departure in removed:
                if departure.new_host_id:
                    self.notifier.to_room(session, 'new_host', {
                        'hostId': departure.new_host_id,
                        'hostName': session.host.name,
                    })
            if removed and not session.is_empty():
                self.notifier.to_room(session, 'player_left', self._players_payload(session))
        self.registry.remove_if_empty(session)

    def sweep(self):
        for session in self.registry.sweep(self.abandoned_after_sec):
            self.notifier.to_room(session, 'session_ended', {'code': session.room_code})
