"""Process-wide store of live game sessions, keyed by session id and room code."""
import logging
import random
import threading
import time
from typing import Callable, Dict, List, Optional

from .errors import RoomNotFound
from .session import GameSession, SessionRules
from .words import WordBank


logger = logging.getLogger(__name__)

# No 0/O or 1/I look-alikes
ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ROOM_CODE_LENGTH = 6


def generate_room_code(rng=random) -> str:
    return ''.join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


class SessionRegistry:
    def __init__(
        self,
        rules: SessionRules = None,
        word_bank: WordBank = None,
        code_factory: Callable[[], str] = None,
        rng=random,
        clock=time.monotonic,
    ):
        self.rules = rules or SessionRules()
        self.word_bank = word_bank or WordBank()
        self.rng = rng
        self.clock = clock
        self._code_factory = code_factory or (lambda: generate_room_code(self.rng))
        self._by_id: Dict[str, GameSession] = {}
        self._by_code: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._by_id)

    def _unique_code(self) -> str:
        code = self._code_factory()
        while code in self._by_code:
            logger.debug(f"[room-code] collision on {code}, retrying")
            code = self._code_factory()
        return code

    def create(self, host_name, custom=False, connection_id=None, account_id=None) -> GameSession:
        with self._lock:
            code = self._unique_code()
            session = GameSession(
                room_code=code,
                host_name=host_name,
                custom=custom,
                connection_id=connection_id,
                account_id=account_id,
                rules=self.rules,
                word_bank=self.word_bank,
                rng=self.rng,
                clock=self.clock,
            )
            self._by_id[session.session_id] = session
            self._by_code[code] = session.session_id
        logger.info(f"[create] code={code} custom={session.is_custom}")
        return session

    def find(self, ref) -> Optional[GameSession]:
        """Look a session up by room code (any case) or session id."""
        if not ref:
            return None
        ref = str(ref).strip()
        session_id = self._by_code.get(ref.upper())
        if session_id is None:
            session_id = ref
        return self._by_id.get(session_id)

    def get(self, ref) -> GameSession:
        session = self.find(ref)
        if session is None:
            raise RoomNotFound()
        return session

    def sessions(self) -> List[GameSession]:
        return list(self._by_id.values())

    def remove(self, session: GameSession) -> None:
        with self._lock:
            self._by_id.pop(session.session_id, None)
            if self._by_code.get(session.room_code) == session.session_id:
                self._by_code.pop(session.room_code, None)
        logger.info(f"[remove] code={session.room_code}")

    def remove_if_empty(self, session: GameSession) -> bool:
        if session.is_empty():
            self.remove(session)
            return True
        return False

    def sweep(self, abandoned_after_sec: float, now=None) -> List[GameSession]:
        """Drop empty sessions and sessions nobody has been connected to for a while."""
        now = self.clock() if now is None else now
        dropped = []
        for session in self.sessions():
            with session.lock:
                session.reap_departed(now)
                if session.is_empty() or session.is_abandoned(now, abandoned_after_sec):
                    dropped.append(session)
        for session in dropped:
            self.remove(session)
        return dropped
