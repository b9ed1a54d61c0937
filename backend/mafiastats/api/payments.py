import json

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from mafiastats import db
from mafiastats.errors import APIError
from mafiastats.models import Payment
from mafiastats.permissions import ANY_USER, PREMIUM, has_role, roles_required
from mafiastats.services.payments import (
    create_payment, handle_webhook_event, use_premium_night, verify_webhook_signature,
)


payments = Blueprint('payments', __name__)


@payments.route('/', methods=['POST'])
@roles_required(*ANY_USER)
def start_payment():
    data = request.get_json(silent=True) or {}
    payment = create_payment(current_user, data.get('amount'), description=data.get('description'))
    return jsonify(payment.to_dict()), 201


@payments.route('/mine', methods=['GET'])
@roles_required(*ANY_USER)
def my_payments():
    rows = (
        Payment.query.filter_by(user_id=current_user.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    return jsonify([p.to_dict() for p in rows])


@payments.route('/webhook', methods=['POST'])
def payment_webhook():
    body = request.get_data()
    signature = request.headers.get('X-Signature')
    if not verify_webhook_signature(body, signature, current_app.config.get('PAYMENT_WEBHOOK_SECRET')):
        current_app.logger.warning("[webhook] rejected: bad signature")
        return jsonify({'error': 'Invalid signature'}), 400
    try:
        event = json.loads(body)
        return jsonify(handle_webhook_event(event))
    except (ValueError, APIError) as exc:
        db.session.rollback()
        current_app.logger.warning(f"[webhook] rejected: {exc}")
        return jsonify({'error': f'Webhook error: {exc}'}), 400
    except Exception as exc:
        # Any failure is a 400 to the provider
        db.session.rollback()
        current_app.logger.exception(f"[webhook] failed: {exc}")
        return jsonify({'error': 'Webhook error'}), 400


@payments.route('/premium-status', methods=['GET'])
@roles_required(*ANY_USER)
def premium_status():
    return jsonify({
        'role': current_user.role,
        'premium_nights': current_user.premium_nights,
        'is_premium': has_role(current_user, PREMIUM),
    })


@payments.route('/use-night', methods=['POST'])
@roles_required(*PREMIUM)
def spend_premium_night():
    remaining = use_premium_night(current_user)
    return jsonify({'premium_nights': remaining})
