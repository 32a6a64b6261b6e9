import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///imposter.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Room capacity and start thresholds
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '10'))
    MIN_PLAYERS_STANDARD = int(os.environ.get('MIN_PLAYERS_STANDARD', '4'))
    # Custom games: host + at least two players
    MIN_PLAYERS_CUSTOM = int(os.environ.get('MIN_PLAYERS_CUSTOM', '3'))
    MIN_PLAYERS_AUTO_ROUND = int(os.environ.get('MIN_PLAYERS_AUTO_ROUND', '4'))
    # Lobby players are removed this long after their socket drops (seconds)
    LOBBY_LEAVE_GRACE_SEC = float(os.environ.get('LOBBY_LEAVE_GRACE_SEC', '30'))
    # Playing sessions with nobody connected are dropped after this long (seconds)
    ABANDONED_SESSION_SEC = float(os.environ.get('ABANDONED_SESSION_SEC', '900'))
    ROUND_HISTORY_LIMIT = int(os.environ.get('ROUND_HISTORY_LIMIT', '10'))
    CUSTOM_TEXT_MAX_LEN = int(os.environ.get('CUSTOM_TEXT_MAX_LEN', '100'))
