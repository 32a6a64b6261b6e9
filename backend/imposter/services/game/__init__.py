"""Game domain services: round generation, vote tally, sessions.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""
from .errors import GameError
from .registry import SessionRegistry
from .service import GameService
from .session import GameSession, Phase, SessionRules
from .words import WordBank
