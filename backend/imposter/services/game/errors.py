"""Error taxonomy for game-session operations.

Every error is a local, recoverable condition reported to the requester
only. ``code`` is stable and safe to match on in clients; ``status`` is the
HTTP status the stateless transport answers with.
"""


class GameError(Exception):
    code = 'game_error'
    status = 400
    default_message = 'Request could not be completed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class RoomNotFound(GameError):
    code = 'room_not_found'
    status = 404
    default_message = 'Room not found. Check the code!'


class PlayerNotFound(GameError):
    code = 'player_not_found'
    status = 404
    default_message = 'Player not found in this game. Create or join a new game.'


class NotHost(GameError):
    code = 'not_host'
    status = 403
    default_message = 'Only the host can do that'


class GameAlreadyStarted(GameError):
    code = 'game_already_started'
    status = 409
    default_message = 'Game has already started!'


class TooFewPlayers(GameError):
    code = 'too_few_players'
    status = 400
    default_message = 'Not enough players to start'


class RoomFull(GameError):
    code = 'room_full'
    status = 409
    default_message = 'Room is full!'


class NameTaken(GameError):
    code = 'name_taken'
    status = 409
    default_message = 'That name is already taken!'


class VotesIncomplete(GameError):
    code = 'votes_incomplete'
    status = 409
    default_message = 'Not everyone has voted yet'


class InvalidRoundSetup(GameError):
    code = 'invalid_round_setup'
    status = 400
    default_message = 'Category and word are required'


class NotAllowedToVote(GameError):
    code = 'not_allowed_to_vote'
    status = 403
    default_message = 'You are not playing this round'


class InvalidVote(GameError):
    code = 'invalid_vote'
    status = 400
    default_message = 'Invalid vote'


class InvalidAction(GameError):
    code = 'invalid_action'
    status = 409
    default_message = 'That is not possible right now'


class InvalidInput(GameError):
    code = 'invalid_input'
    status = 400
    default_message = 'Invalid input'


class InternalError(GameError):
    code = 'internal_error'
    status = 500
    default_message = 'Something went wrong. Please try again.'
