from imposter import db, bcrypt
from flask_login import UserMixin
import time


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    # Lower-cased username, for case-insensitive uniqueness
    username_key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.Float, default=time.time)
    results = db.relationship('RoundResult', back_populates='user', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class RoundResult(db.Model):
    __tablename__ = 'round_result'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    was_imposter = db.Column(db.Boolean, nullable=False)
    won = db.Column(db.Boolean, nullable=False)
    vote_correct = db.Column(db.Boolean, nullable=True)
    created_at = db.Column(db.Float, default=time.time)
    user = db.relationship('User', back_populates='results')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'was_imposter': self.was_imposter,
            'won': self.won,
            'vote_correct': self.vote_correct,
        }
