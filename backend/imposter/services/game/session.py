"""The per-room game session: players, rounds, voting and reveal.

A session moves through an explicit phase:

    LOBBY -> SETUP (custom games, host picks the word) -> ROUND -> VOTING -> REVEALED

and from ROUND/REVEALED back to ROUND or SETUP for the next round. Every
operation checks the phase explicitly and raises ``InvalidAction`` when it
does not apply. Operations that were already applied (duplicate delivery
over the second transport) leave ``version`` untouched so callers can tell
a no-op from a transition.

Game logic keys everything by ``Player.player_id``; ``connection_id`` is
only the current transport handle.
"""
import logging
import random
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .errors import (
    GameAlreadyStarted,
    InvalidAction,
    InvalidInput,
    InvalidVote,
    NameTaken,
    NotAllowedToVote,
    NotHost,
    PlayerNotFound,
    RoomFull,
    TooFewPlayers,
)
from .rounds import Round, generate_round
from .tally import RevealResult, Vote, tally, vote_was_correct
from .words import WordBank


logger = logging.getLogger(__name__)


class Phase(str, Enum):
    LOBBY = 'lobby'
    SETUP = 'setup'
    ROUND = 'round'
    VOTING = 'voting'
    REVEALED = 'revealed'


@dataclass
class SessionRules:
    max_players: int = 10
    min_players_standard: int = 4
    min_players_custom: int = 3
    min_players_auto_round: int = 4
    min_custom_round_players: int = 1
    lobby_leave_grace_sec: float = 30.0
    history_limit: int = 10

    @classmethod
    def from_config(cls, config):
        return cls(
            max_players=int(config.get('MAX_PLAYERS', 10)),
            min_players_standard=int(config.get('MIN_PLAYERS_STANDARD', 4)),
            min_players_custom=int(config.get('MIN_PLAYERS_CUSTOM', 3)),
            min_players_auto_round=int(config.get('MIN_PLAYERS_AUTO_ROUND', 4)),
            lobby_leave_grace_sec=float(config.get('LOBBY_LEAVE_GRACE_SEC', 30)),
            history_limit=int(config.get('ROUND_HISTORY_LIMIT', 10)),
        )


def normalize_name(name) -> str:
    return (name or '').strip().lower()


@dataclass
class Player:
    player_id: str
    name: str
    connection_id: Optional[str] = None
    account_id: Optional[int] = None
    connected: bool = True
    # Lobby removal deadline after a dropped connection
    departs_at: Optional[float] = None

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    def to_dict(self):
        return {
            'id': self.player_id,
            'name': self.name,
            'connected': self.connected,
        }


@dataclass(frozen=True)
class RoundOutcome:
    player_id: str
    account_id: Optional[int]
    was_imposter: bool
    won: bool
    vote_correct: bool


@dataclass
class Departure:
    """What a leave/disconnect did to the session."""
    player: Player
    removed: bool = False
    scheduled: bool = False
    new_host_id: Optional[str] = None
    empty: bool = False


class GameSession:
    def __init__(
        self,
        room_code: str,
        host_name: str,
        custom: bool = False,
        session_id: str = None,
        connection_id: str = None,
        account_id: int = None,
        rules: SessionRules = None,
        word_bank: WordBank = None,
        rng=random,
        clock=time.monotonic,
    ):
        if not normalize_name(host_name):
            raise InvalidInput('Name is required')
        self.session_id = session_id or str(uuid.uuid4())
        self.room_code = room_code
        self.is_custom = bool(custom)
        self.rules = rules or SessionRules()
        self.word_bank = word_bank or WordBank()
        self.rng = rng
        self.clock = clock
        self.lock = threading.RLock()

        self.phase = Phase.LOBBY
        self.players: List[Player] = []
        self.current_round: Optional[Round] = None
        self.round_history = deque(maxlen=self.rules.history_limit)
        self.round_number = 0
        self.version = 0
        self.votes: Dict[str, Vote] = {}
        self.last_reveal: Optional[RevealResult] = None
        self.last_outcomes: List[RoundOutcome] = []
        self.abandoned_since: Optional[float] = None

        host = self._seat(host_name, connection_id, account_id)
        self.host_id = host.player_id
        self.creator_id = host.player_id

    # ---- lookups ----

    @property
    def status(self) -> str:
        return 'lobby' if self.phase == Phase.LOBBY else 'playing'

    @property
    def vote_phase(self) -> Optional[str]:
        if self.phase == Phase.VOTING:
            return 'voting'
        if self.phase == Phase.REVEALED:
            return 'revealed'
        return None

    @property
    def host(self) -> Player:
        return self.get_player(self.host_id)

    def get_player(self, player_id) -> Player:
        for p in self.players:
            if p.player_id == player_id:
                return p
        raise PlayerNotFound()

    def player_by_name(self, name) -> Player:
        key = normalize_name(name)
        for p in self.players:
            if p.key == key:
                return p
        raise PlayerNotFound()

    def player_by_connection(self, connection_id) -> Player:
        if connection_id is not None:
            for p in self.players:
                if p.connection_id == connection_id:
                    return p
        raise PlayerNotFound()

    def roster(self) -> Dict[str, str]:
        return {p.player_id: p.name for p in self.players}

    def is_host(self, player_id) -> bool:
        return player_id == self.host_id

    def is_playing_round(self, player_id) -> bool:
        return self.current_round is not None and player_id in self.current_round.player_ids

    # ---- internals ----

    def _touch(self):
        self.version += 1

    def _seat(self, name, connection_id=None, account_id=None) -> Player:
        player = Player(
            player_id=uuid.uuid4().hex[:12],
            name=name.strip(),
            connection_id=connection_id,
            account_id=account_id,
        )
        self.players.append(player)
        return player

    def _require_host(self, requester_id):
        self.get_player(requester_id)
        if not self.is_host(requester_id):
            raise NotHost()

    def _require_phase(self, *phases):
        if self.phase not in phases:
            raise InvalidAction(f'Not possible during {self.phase.value}')

    def _is_duplicate(self, round_number) -> bool:
        return round_number is not None and int(round_number) != self.round_number

    def _begin_round(self, player_ids, custom=None) -> Round:
        if self.current_round is not None:
            self.round_history.append(self.current_round)
        round_ = generate_round(
            player_ids,
            recent_rounds=list(self.round_history),
            word_bank=self.word_bank,
            custom=custom,
            rng=self.rng,
        )
        self.current_round = round_
        self.round_number += 1
        self.votes = {}
        self.last_reveal = None
        self.last_outcomes = []
        self.phase = Phase.ROUND
        self._touch()
        logger.info(
            f"[round-start] code={self.room_code} round={self.round_number} "
            f"variant={round_.variant.value} players={len(player_ids)} custom={round_.custom}"
        )
        return round_

    def _enter_setup(self):
        if self.current_round is not None:
            self.round_history.append(self.current_round)
        self.current_round = None
        self.votes = {}
        self.last_reveal = None
        self.last_outcomes = []
        self.phase = Phase.SETUP
        self._touch()

    def _standard_player_ids(self):
        return [p.player_id for p in self.players]

    def _custom_player_ids(self):
        return [p.player_id for p in self.players if p.player_id != self.host_id]

    # ---- lobby ----

    def join(self, name, connection_id=None, account_id=None) -> Player:
        if self.phase != Phase.LOBBY:
            raise GameAlreadyStarted()
        key = normalize_name(name)
        if not key:
            raise InvalidInput('Name is required')
        if any(p.key == key for p in self.players):
            raise NameTaken()
        if len(self.players) >= self.rules.max_players:
            raise RoomFull(f'Room is full! Max {self.rules.max_players} players.')
        player = self._seat(name, connection_id, account_id)
        self.abandoned_since = None
        self._touch()
        return player

    def start(self, requester_id) -> Optional[Round]:
        """Start the game. Returns the round, or None when the host must set one up."""
        self._require_host(requester_id)
        if self.phase != Phase.LOBBY:
            # Already started: duplicate delivery
            return self.current_round
        if self.is_custom:
            if len(self.players) < self.rules.min_players_custom:
                raise TooFewPlayers(
                    f'Need at least {self.rules.min_players_custom - 1} players besides the host!'
                )
            self._enter_setup()
            logger.info(f"[start] code={self.room_code} custom=True awaiting setup")
            return None
        if len(self.players) < self.rules.min_players_standard:
            raise TooFewPlayers(f'Need at least {self.rules.min_players_standard} players to start!')
        return self._begin_round(self._standard_player_ids())

    def return_to_lobby(self, requester_id) -> List[Player]:
        """Back to the lobby. Returns the disconnected players now on the lobby grace timer."""
        self._require_host(requester_id)
        if self.phase == Phase.LOBBY:
            return []
        if self.current_round is not None:
            self.round_history.append(self.current_round)
        self.current_round = None
        self.votes = {}
        self.last_reveal = None
        self.last_outcomes = []
        self.phase = Phase.LOBBY
        deadline = self.clock() + self.rules.lobby_leave_grace_sec
        departing = [p for p in self.players if not p.connected]
        for player in departing:
            player.departs_at = deadline
        self._touch()
        return departing

    # ---- rounds ----

    def new_round(self, requester_id, round_number=None) -> Optional[Round]:
        """Deal the next round; custom games go back to host setup instead."""
        self._require_host(requester_id)
        self._require_phase(Phase.SETUP, Phase.ROUND, Phase.VOTING, Phase.REVEALED)
        if self._is_duplicate(round_number):
            return self.current_round
        if self.is_custom:
            if self.phase != Phase.SETUP:
                self._enter_setup()
            return None
        if len(self.players) < self.rules.min_players_standard:
            raise TooFewPlayers(f'Need at least {self.rules.min_players_standard} players to start!')
        return self._begin_round(self._standard_player_ids())

    def setup_custom_round(self, requester_id, category, word, round_number=None) -> Round:
        """Host-chosen word; the host spectates this round."""
        self._require_host(requester_id)
        self._require_phase(Phase.SETUP, Phase.ROUND, Phase.REVEALED)
        if self._is_duplicate(round_number):
            return self.current_round
        pair = self.word_bank.validate_custom(category, word)
        player_ids = self._custom_player_ids()
        if len(player_ids) < self.rules.min_custom_round_players:
            raise TooFewPlayers('Need at least one other player for a custom round')
        return self._begin_round(player_ids, custom=pair)

    def auto_round(self, requester_id, round_number=None) -> Round:
        """Generated round in which the host plays too."""
        self._require_host(requester_id)
        self._require_phase(Phase.SETUP, Phase.ROUND, Phase.REVEALED)
        if self._is_duplicate(round_number):
            return self.current_round
        if len(self.players) < self.rules.min_players_auto_round:
            raise TooFewPlayers(
                f'Need at least {self.rules.min_players_auto_round} players including the host!'
            )
        return self._begin_round(self._standard_player_ids())

    # ---- voting ----

    def start_vote(self, requester_id, round_number=None):
        self._require_host(requester_id)
        if self.phase in (Phase.VOTING, Phase.REVEALED) or self._is_duplicate(round_number):
            return
        self._require_phase(Phase.ROUND)
        self.votes = {}
        self.phase = Phase.VOTING
        self._touch()

    def submit_vote(self, voter_id, vote: Vote):
        voter = self.get_player(voter_id)
        self._require_phase(Phase.VOTING)
        if not self.is_playing_round(voter.player_id):
            raise NotAllowedToVote()
        if not vote.no_imposter:
            if not vote.accused:
                raise InvalidVote('Pick at least one player, or vote no imposter')
            if voter.player_id in vote.accused:
                raise InvalidVote("You can't vote for yourself")
            if not vote.accused <= self.current_round.player_ids:
                raise InvalidVote('You can only accuse players in this round')
        # Replace, never merge, an earlier ballot
        self.votes[voter.player_id] = vote
        self._touch()

    @property
    def voted_count(self) -> int:
        if self.current_round is None:
            return 0
        return len(set(self.votes) & self.current_round.player_ids)

    @property
    def voter_count(self) -> int:
        return len(self.current_round.player_ids) if self.current_round else 0

    def reveal(self, requester_id, round_number=None) -> Optional[RevealResult]:
        """Tally and close the vote. Repeats return the cached result."""
        self._require_host(requester_id)
        if self.phase == Phase.REVEALED:
            return self.last_reveal
        if self._is_duplicate(round_number):
            # Reveal for a round that has since been replaced
            return None
        self._require_phase(Phase.VOTING)

        round_ = self.current_round
        result = tally(round_, self.votes, self.roster())
        outcomes = []
        for pid in round_.turn_order:
            assignment = round_.assignment_for(pid)
            won = (not result.crew_won) if assignment.is_imposter else result.crew_won
            outcomes.append(RoundOutcome(
                player_id=pid,
                account_id=self.get_player(pid).account_id,
                was_imposter=assignment.is_imposter,
                won=won,
                vote_correct=vote_was_correct(self.votes.get(pid), round_),
            ))

        # Only flip once everything above succeeded
        self.last_reveal = result
        self.last_outcomes = outcomes
        self.votes = {}
        self.phase = Phase.REVEALED
        self._touch()
        logger.info(
            f"[reveal] code={self.room_code} round={self.round_number} crew_won={result.crew_won} "
            f"ejected={result.ejected_player_id} tie={result.was_tie}"
        )
        return result

    # ---- presence ----

    def _next_connected_after(self, player_id) -> Optional[Player]:
        ids = [p.player_id for p in self.players]
        start = ids.index(player_id) if player_id in ids else -1
        for offset in range(1, len(self.players)):
            candidate = self.players[(start + offset) % len(self.players)]
            if candidate.connected:
                return candidate
        return None

    def _remove(self, player: Player, departure: Departure):
        self.players.remove(player)
        departure.removed = True
        if not self.players:
            departure.empty = True
        elif self.host_id == player.player_id:
            successor = next((p for p in self.players if p.connected), self.players[0])
            self.host_id = successor.player_id
            departure.new_host_id = self.host_id
        self._touch()

    def disconnect(self, player_id, explicit=False) -> Departure:
        """Handle a dropped connection or an explicit leave.

        Lobby players are removed (explicit leave) or scheduled for removal
        after the grace period. Playing players keep their slot; a departing
        host hands over to the next connected player by join order.
        """
        player = self.get_player(player_id)
        departure = Departure(player=player)
        player.connected = False
        player.connection_id = None
        now = self.clock()

        if self.phase == Phase.LOBBY:
            if explicit:
                self._remove(player, departure)
            else:
                player.departs_at = now + self.rules.lobby_leave_grace_sec
                departure.scheduled = True
                self._touch()
        else:
            if self.host_id == player.player_id:
                successor = self._next_connected_after(player.player_id)
                if successor is not None:
                    self.host_id = successor.player_id
                    departure.new_host_id = successor.player_id
                    logger.info(f"[host-transfer] code={self.room_code} to={successor.name}")
            self._touch()

        if self.players and not any(p.connected for p in self.players):
            self.abandoned_since = now
        return departure

    def reap_departed(self, now=None) -> List[Departure]:
        """Remove lobby players whose grace period expired."""
        if self.phase != Phase.LOBBY:
            return []
        now = self.clock() if now is None else now
        results = []
        for player in list(self.players):
            if not player.connected and player.departs_at is not None and player.departs_at <= now:
                departure = Departure(player=player)
                self._remove(player, departure)
                results.append(departure)
        return results

    def reconnect(self, player_id, connection_id=None, claims_host=False) -> Player:
        """Bind a player to a new transport handle."""
        player = self.get_player(player_id)
        # HTTP rejoins carry no handle; keep the live socket one
        if connection_id is not None:
            player.connection_id = connection_id
        player.connected = True
        player.departs_at = None
        self.abandoned_since = None
        if claims_host and player.player_id == self.creator_id and self.host_id != player.player_id:
            self.host_id = player.player_id
            logger.info(f"[host-restore] code={self.room_code} host={player.name}")
        self._touch()
        return player

    def is_empty(self) -> bool:
        return not self.players

    def is_abandoned(self, now, after_sec) -> bool:
        return self.abandoned_since is not None and now - self.abandoned_since >= after_sec

    # ---- views ----

    def public_dict(self):
        return {
            'sessionId': self.session_id,
            'code': self.room_code,
            'status': self.status,
            'phase': self.phase.value,
            'isCustom': self.is_custom,
            'hostId': self.host_id,
            'players': [p.to_dict() for p in self.players],
            'roundNumber': self.round_number,
            'version': self.version,
            'needsSetup': self.phase == Phase.SETUP,
            'votePhase': self.vote_phase,
            'votedCount': self.voted_count,
            'totalVoters': self.voter_count,
        }

    def turn_order_names(self) -> List[str]:
        if self.current_round is None:
            return []
        roster = self.roster()
        return [roster.get(pid, '') for pid in self.current_round.turn_order]

    def snapshot(self, viewer_id) -> dict:
        """Everything one player needs to resume where they left off."""
        viewer = self.get_player(viewer_id)
        data = self.public_dict()
        data['you'] = {
            'id': viewer.player_id,
            'name': viewer.name,
            'isHost': self.is_host(viewer.player_id),
        }
        data['assignment'] = None
        data['hostRound'] = None
        data['turnOrder'] = self.turn_order_names()
        data['hasVoted'] = viewer.player_id in self.votes
        if self.current_round is not None:
            assignment = self.current_round.assignment_for(viewer.player_id)
            if assignment is not None:
                data['assignment'] = assignment.to_dict(total_players=self.voter_count)
            elif self.is_host(viewer.player_id):
                data['hostRound'] = {
                    'category': self.current_round.category,
                    'word': self.current_round.word,
                }
        data['reveal'] = self.last_reveal.to_dict() if self.last_reveal else None
        return data
