"""Wires the game service to Socket.IO fan-out and background tasks."""
from flask import current_app

from imposter import socketio
from imposter.accounts import AccountStore
from imposter.services.game import GameService, SessionRegistry, SessionRules, WordBank

NAMESPACE = '/ws'


def room_name(session) -> str:
    return f"game:{session.room_code}"


class SocketNotifier:
    """Room-wide broadcasts and direct sends over the /ws namespace.

    Players without a live socket (stateless clients) simply miss direct
    sends; they catch up by polling their state.
    """

    def to_room(self, session, event, payload):
        socketio.emit(event, payload, to=room_name(session), namespace=NAMESPACE)

    def to_player(self, player, event, payload):
        if player.connection_id:
            socketio.emit(event, payload, to=player.connection_id, namespace=NAMESPACE)


def build_game_service(app) -> GameService:
    rules = SessionRules.from_config(app.config)
    registry = SessionRegistry(
        rules=rules,
        word_bank=WordBank(max_text_len=int(app.config.get('CUSTOM_TEXT_MAX_LEN', 100))),
    )
    testing = app.config.get('TESTING')

    def background(fn, *args):
        # In tests, run inline for determinism
        if testing:
            fn(*args)
            return

        def _runner():
            with app.app_context():
                fn(*args)

        socketio.start_background_task(_runner)

    def later(delay, fn, *args):
        if testing and not app.config.get('ENABLE_TIMERS_IN_TESTS'):
            return

        def _runner():
            socketio.sleep(delay)
            with app.app_context():
                try:
                    fn(*args)
                except Exception:
                    app.logger.exception('[timer] deferred task failed')

        socketio.start_background_task(_runner)

    return GameService(
        registry,
        account_store=AccountStore(),
        notifier=SocketNotifier(),
        background=background,
        later=later,
        abandoned_after_sec=float(app.config.get('ABANDONED_SESSION_SEC', 900)),
    )


def game_service() -> GameService:
    return current_app.extensions['imposter']
