"""Account Store: users and per-round stats backed by SQLAlchemy.

The game core only ever calls ``record_round_result``; everything else
serves the account HTTP routes.
"""
from sqlalchemy import case, func

from imposter import db
from imposter.models import RoundResult, User


class AccountError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


class AccountStore:
    def create_user(self, username, password) -> User:
        username = (username or '').strip() if isinstance(username, str) else ''
        if len(username) < 2:
            raise AccountError('Username must be at least 2 characters')
        if not isinstance(password, str) or len(password) < 4:
            raise AccountError('Password must be at least 4 characters')
        key = username.lower()
        if User.query.filter_by(username_key=key).first():
            raise AccountError('Username taken')
        user = User(username=username, username_key=key)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def sign_in(self, username, password) -> User:
        key = (username or '').strip().lower() if isinstance(username, str) else ''
        user = User.query.filter_by(username_key=key).first()
        if not user or not isinstance(password, str) or not user.check_password(password):
            raise AccountError('Invalid username or password', status=401)
        return user

    def get_user(self, user_id):
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    def record_round_result(self, user_id, was_imposter, won, vote_correct=None) -> RoundResult:
        result = RoundResult(
            user_id=int(user_id),
            was_imposter=bool(was_imposter),
            won=bool(won),
            vote_correct=None if vote_correct is None else bool(vote_correct),
        )
        db.session.add(result)
        db.session.commit()
        return result

    def get_user_stats(self, user_id):
        stats = {'teamWins': 0, 'teamLosses': 0, 'imposterWins': 0, 'imposterLosses': 0, 'correctVotes': 0}
        for r in RoundResult.query.filter_by(user_id=int(user_id)).all():
            if r.was_imposter:
                stats['imposterWins' if r.won else 'imposterLosses'] += 1
            else:
                stats['teamWins' if r.won else 'teamLosses'] += 1
            if r.vote_correct:
                stats['correctVotes'] += 1
        return stats

    def get_leaderboard(self, limit=50):
        wins = func.sum(case((RoundResult.won.is_(True), 1), else_=0))
        rounds = func.count(RoundResult.id)
        rows = (
            db.session.query(User.id, User.username, wins.label('wins'), rounds.label('rounds'))
            .join(RoundResult, RoundResult.user_id == User.id)
            .group_by(User.id, User.username)
            .order_by(wins.desc(), rounds.asc(), User.username.asc())
            .limit(limit)
            .all()
        )
        return [
            {'id': r.id, 'username': r.username, 'wins': int(r.wins or 0), 'rounds': int(r.rounds or 0)}
            for r in rows
        ]
