from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from mafiastats import db
from mafiastats.models import Payment, User, USER_ROLES
from mafiastats.permissions import ADMIN, roles_required
from mafiastats.services.payments import complete_payment


admin = Blueprint('admin', __name__)


@admin.route('/payments', methods=['GET'])
@roles_required(*ADMIN)
def list_payments():
    query = Payment.query
    status = request.args.get('status')
    if status and status != 'all':
        query = query.filter(Payment.status == status)
    rows = query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()
    return jsonify([p.to_dict() for p in rows])


@admin.route('/payments/<int:payment_id>/complete', methods=['POST'])
@roles_required(*ADMIN)
def complete_payment_manually(payment_id):
    result = complete_payment(payment_id=payment_id)
    current_app.logger.info(
        f"[admin] payment={payment_id} completed by={current_user.id} already={result.already_completed}"
    )
    return jsonify({
        'payment': result.payment.to_dict(),
        'nights_credited': result.nights_credited,
        'already_completed': result.already_completed,
    })


@admin.route('/users', methods=['GET'])
@roles_required(*ADMIN)
def list_users():
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify([u.to_dict(private=True) for u in users])


@admin.route('/users/<int:user_id>/role', methods=['PUT'])
@roles_required(*ADMIN)
def set_user_role(user_id):
    user = db.get_or_404(User, user_id, description='User not found')
    role = ((request.get_json(silent=True) or {}).get('role') or '').lower()
    if role not in USER_ROLES:
        return jsonify({'error': f"role must be one of {', '.join(USER_ROLES)}"}), 400
    user.role = role
    db.session.commit()
    current_app.logger.info(f"[admin] user={user.id} role={role} by={current_user.id}")
    return jsonify(user.to_dict(private=True))
