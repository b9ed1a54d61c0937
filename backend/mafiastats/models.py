from datetime import datetime, timezone
from decimal import Decimal

from flask_login import UserMixin

from mafiastats import db, bcrypt

# Participant roles; civilian and sheriff play for the town, mafia and don against it
ROLE_CIVILIAN = 'civilian'
ROLE_SHERIFF = 'sheriff'
ROLE_MAFIA = 'mafia'
ROLE_DON = 'don'
ROLES = (ROLE_CIVILIAN, ROLE_SHERIFF, ROLE_MAFIA, ROLE_DON)
TOWN_ROLES = frozenset({ROLE_CIVILIAN, ROLE_SHERIFF})
MAFIA_ROLES = frozenset({ROLE_MAFIA, ROLE_DON})

RESULT_CIVILIANS_WIN = 'civilians_win'
RESULT_MAFIA_WIN = 'mafia_win'
RESULT_DRAW = 'draw'
RESULTS = (RESULT_CIVILIANS_WIN, RESULT_MAFIA_WIN, RESULT_DRAW)

GAME_TYPES = ('classic_10', 'classic_8', 'tournament', 'rating', 'custom')
STAGE_TYPES = ('day', 'night', 'best_move')
MAX_SLOTS = 10

USER_ROLES = ('user', 'premium', 'admin')

PAYMENT_PENDING = 'pending'
PAYMENT_COMPLETED = 'completed'
PAYMENT_FAILED = 'failed'


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


def _points(value):
    return float(value if value is not None else Decimal('0'))


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=True)
    name = db.Column(db.String(100), nullable=False)
    surname = db.Column(db.String(100), nullable=True)
    nickname = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    bio = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(255), nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    birthday = db.Column(db.Date, nullable=True)
    club_id = db.Column(db.Integer, db.ForeignKey('clubs.id', ondelete='SET NULL'), nullable=True)
    is_tournament_judge = db.Column(db.Boolean, default=False, nullable=False)
    is_side_judge = db.Column(db.Boolean, default=False, nullable=False)
    role = db.Column(db.String(20), default='user', nullable=False)
    premium_nights = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    club = db.relationship('Club', back_populates='members')
    participations = db.relationship('GamePlayer', back_populates='player', passive_deletes=True)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        if self.nickname:
            return self.nickname
        return ' '.join(part for part in (self.name, self.surname) if part)

    def to_dict(self, private=False):
        data = {
            'id': self.id,
            'name': self.name,
            'surname': self.surname,
            'nickname': self.nickname,
            'country': self.country,
            'bio': self.bio,
            'image': self.image,
            'gender': self.gender,
            'birthday': _iso(self.birthday),
            'club_id': self.club_id,
            'club_name': self.club.name if self.club else None,
            'is_tournament_judge': bool(self.is_tournament_judge),
            'is_side_judge': bool(self.is_side_judge),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if private:
            data.update({
                'email': self.email,
                'role': self.role,
                'premium_nights': self.premium_nights,
            })
        return data


class Federation(db.Model):
    __tablename__ = 'federations'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    url = db.Column(db.String(255), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    additional_points_conditions = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    clubs = db.relationship('Club', back_populates='federation')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'url': self.url,
            'country': self.country,
            'city': self.city,
            'additional_points_conditions': self.additional_points_conditions,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Club(db.Model):
    __tablename__ = 'clubs'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    url = db.Column(db.String(255), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    federation_id = db.Column(db.Integer, db.ForeignKey('federations.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    federation = db.relationship('Federation', back_populates='clubs')
    members = db.relationship('User', back_populates='club')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'url': self.url,
            'country': self.country,
            'city': self.city,
            'federation_id': self.federation_id,
            'federation_name': self.federation.name if self.federation else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Game(db.Model):
    __tablename__ = 'games'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    game_type = db.Column(db.String(50), nullable=False, default='classic_10')
    result = db.Column(db.String(50), nullable=True)  # civilians_win, mafia_win, draw
    referee_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    referee_comments = db.Column(db.Text, nullable=True)
    table_number = db.Column(db.Integer, nullable=True)
    club_id = db.Column(db.Integer, db.ForeignKey('clubs.id', ondelete='SET NULL'), nullable=True)
    federation_id = db.Column(db.Integer, db.ForeignKey('federations.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    referee = db.relationship('User', foreign_keys=[referee_id])
    club = db.relationship('Club', foreign_keys=[club_id])
    federation = db.relationship('Federation', foreign_keys=[federation_id])
    participants = db.relationship(
        'GamePlayer', back_populates='game', cascade='all, delete-orphan',
        order_by='GamePlayer.slot_number',
    )
    stages = db.relationship(
        'GameStage', back_populates='game', cascade='all, delete-orphan',
        order_by='GameStage.order_number',
    )

    def to_dict(self, include_players=True, include_stages=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'game_type': self.game_type,
            'result': self.result,
            'referee_id': self.referee_id,
            'referee_name': self.referee.display_name if self.referee else None,
            'referee_comments': self.referee_comments,
            'table_number': self.table_number,
            'club_id': self.club_id,
            'club_name': self.club.name if self.club else None,
            'federation_id': self.federation_id,
            'federation_name': self.federation.name if self.federation else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_players:
            data['players'] = [gp.to_dict() for gp in self.participants]
        if include_stages:
            data['stages'] = [s.to_dict() for s in self.stages]
        return data


class GamePlayer(db.Model):
    __tablename__ = 'game_players'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role = db.Column(db.String(50), nullable=False)
    slot_number = db.Column(db.Integer, nullable=False)
    fouls = db.Column(db.Integer, default=0, nullable=False)
    additional_points = db.Column(db.Numeric(5, 2), default=Decimal('0'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    game = db.relationship('Game', back_populates='participants')
    player = db.relationship('User', back_populates='participations')

    def to_dict(self):
        player = self.player
        return {
            'id': self.id,
            'game_id': self.game_id,
            'player_id': self.player_id,
            'role': self.role,
            'slot_number': self.slot_number,
            'fouls': self.fouls or 0,
            'additional_points': _points(self.additional_points),
            'name': player.name if player else None,
            'surname': player.surname if player else None,
            'nickname': player.nickname if player else None,
            'image': player.image if player else None,
            'club_name': player.club.name if player and player.club else None,
        }


class GameStage(db.Model):
    __tablename__ = 'game_stages'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    order_number = db.Column(db.Integer, nullable=False)
    data = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    game = db.relationship('Game', back_populates='stages')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'type': self.type,
            'order_number': self.order_number,
            'data': self.data,
        }


class Rating(db.Model):
    __tablename__ = 'ratings'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    club_id = db.Column(db.Integer, db.ForeignKey('clubs.id'), nullable=True)
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    owner = db.relationship('User')
    club = db.relationship('Club')
    rating_games = db.relationship('RatingGame', back_populates='rating', cascade='all, delete-orphan')
    results = db.relationship(
        'RatingResult', back_populates='rating', cascade='all, delete-orphan',
        order_by='RatingResult.points.desc()',
    )

    def to_dict(self, include_results=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'owner_id': self.owner_id,
            'owner_name': self.owner.name if self.owner else None,
            'club_id': self.club_id,
            'club_name': self.club.name if self.club else None,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'is_active': bool(self.is_active),
            'game_count': len(self.rating_games),
            'player_count': len(self.results),
            'created_at': _iso(self.created_at),
        }
        if include_results:
            data['results'] = [r.to_dict() for r in self.results]
        return data


class RatingGame(db.Model):
    __tablename__ = 'rating_games'
    __table_args__ = (db.UniqueConstraint('rating_id', 'game_id', name='uq_rating_game'),)
    id = db.Column(db.Integer, primary_key=True)
    rating_id = db.Column(db.Integer, db.ForeignKey('ratings.id', ondelete='CASCADE'), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id', ondelete='CASCADE'), nullable=False)
    added_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    added_by = db.Column(db.String(255), nullable=True)

    rating = db.relationship('Rating', back_populates='rating_games')
    game = db.relationship('Game')


class RatingResult(db.Model):
    __tablename__ = 'rating_results'
    __table_args__ = (db.UniqueConstraint('rating_id', 'player_id', name='uq_rating_player'),)
    id = db.Column(db.Integer, primary_key=True)
    rating_id = db.Column(db.Integer, db.ForeignKey('ratings.id', ondelete='CASCADE'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    points = db.Column(db.Numeric(10, 2), default=Decimal('0'), nullable=False)
    games_played = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    civilian_wins = db.Column(db.Integer, default=0, nullable=False)
    mafia_wins = db.Column(db.Integer, default=0, nullable=False)
    don_games = db.Column(db.Integer, default=0, nullable=False)
    sheriff_games = db.Column(db.Integer, default=0, nullable=False)
    first_outs = db.Column(db.Integer, default=0, nullable=False)
    best_moves = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    rating = db.relationship('Rating', back_populates='results')
    player = db.relationship('User')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'player_name': self.player.display_name if self.player else None,
            'points': _points(self.points),
            'games_played': self.games_played,
            'wins': self.wins,
            'civilian_wins': self.civilian_wins,
            'mafia_wins': self.mafia_wins,
            'don_games': self.don_games,
            'sheriff_games': self.sheriff_games,
            'first_outs': self.first_outs,
            'best_moves': self.best_moves,
        }


class Payment(db.Model):
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)  # smallest currency unit
    currency = db.Column(db.String(10), default='RUB', nullable=False)
    status = db.Column(db.String(20), default=PAYMENT_PENDING, nullable=False)
    provider_session_id = db.Column(db.String(255), unique=True, nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'user_email': self.user.email if self.user else None,
            'amount': self.amount,
            'currency': self.currency,
            'status': self.status,
            'provider_session_id': self.provider_session_id,
            'description': self.description,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
