from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from mafiastats import db
from mafiastats.errors import parse_date, parse_id
from mafiastats.models import Club, User

main = Blueprint('main', __name__)

PROFILE_FIELDS = ('name', 'surname', 'nickname', 'country', 'bio', 'image', 'gender')


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the mafia statistics server!'})


@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    name = (data.get('name') or '').strip()
    if not email or not password or not name:
        return jsonify({'error': 'Email, password and name are required'}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 400

    user = User(email=email, name=name, surname=data.get('surname'), nickname=data.get('nickname'))
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    current_app.logger.info(f"[register] user={user.id}")
    return jsonify({'message': 'User created successfully', 'user': user.to_dict(private=True)}), 201


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(email=(data.get('email') or '').strip().lower()).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        return jsonify({'message': 'Logged in successfully.', 'user': user.to_dict(private=True)})
    return jsonify({'error': 'Invalid email or password'}), 401


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})


@main.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict(private=True))


@main.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = current_user
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    if not user.name:
        return jsonify({'error': 'Name cannot be empty'}), 400
    if 'birthday' in data:
        user.birthday = parse_date(data['birthday'], 'birthday') if data['birthday'] else None
    if 'club_id' in data:
        if data['club_id'] in (None, ''):
            user.club_id = None
        else:
            club = db.session.get(Club, parse_id(data['club_id'], 'club_id'))
            if not club:
                return jsonify({'error': 'Club not found'}), 404
            user.club_id = club.id
    db.session.commit()
    return jsonify(user.to_dict(private=True))
