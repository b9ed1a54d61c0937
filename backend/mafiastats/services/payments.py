"""Premium payments: pricing, completion and webhook handling."""
import hashlib
import hmac
import math
import uuid
from collections import namedtuple

from flask import current_app
from sqlalchemy import case

from mafiastats import db
from mafiastats.errors import ConflictError, NotFoundError, ValidationError, WebhookError, parse_id
from mafiastats.models import PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING, Payment, User, utcnow

DEFAULT_PLANS = {2000: 4, 3600: 8}
DEFAULT_NIGHT_PRICE = 500

CompletionResult = namedtuple('CompletionResult', ['payment', 'nights_credited', 'already_completed'])


def nights_for_amount(amount, plans=None, night_price=None) -> int:
    """Nights bought by ``amount``; known plan prices win over the per-night formula."""
    plans = DEFAULT_PLANS if plans is None else plans
    night_price = night_price or DEFAULT_NIGHT_PRICE
    if amount in plans:
        return plans[amount]
    return max(0, math.floor(amount / night_price))


def _configured_nights(amount) -> int:
    cfg = current_app.config
    return nights_for_amount(
        amount,
        plans=cfg.get('PREMIUM_PLANS', DEFAULT_PLANS),
        night_price=cfg.get('PREMIUM_NIGHT_PRICE', DEFAULT_NIGHT_PRICE),
    )


def create_payment(user, amount, description=None, session_id=None) -> Payment:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError('amount must be a positive integer')
    payment = Payment(
        user_id=user.id,
        amount=amount,
        status=PAYMENT_PENDING,
        description=description,
        provider_session_id=session_id or f'sess_{uuid.uuid4().hex}',
    )
    db.session.add(payment)
    db.session.commit()
    current_app.logger.info(f"[payment-create] payment={payment.id} user={user.id} amount={amount}")
    return payment


def find_payment(payment_id=None, session_id=None) -> Payment:
    payment = None
    if session_id:
        payment = Payment.query.filter_by(provider_session_id=session_id).first()
    if payment is None and payment_id is not None:
        payment = db.session.get(Payment, parse_id(payment_id, 'payment_id'))
    if payment is None:
        raise NotFoundError('Payment not found')
    return payment


def complete_payment(payment_id=None, session_id=None) -> CompletionResult:
    """Mark a payment completed and credit the buyer's nights, at most once.

    Only a pending payment can complete. The status flip is a conditional
    UPDATE; only the transaction that actually changed the row credits
    nights, in the same commit. A failed payment stays failed.
    """
    payment = find_payment(payment_id=payment_id, session_id=session_id)
    try:
        changed = (
            Payment.query
            .filter(Payment.id == payment.id, Payment.status == PAYMENT_PENDING)
            .update({Payment.status: PAYMENT_COMPLETED, Payment.updated_at: utcnow()},
                    synchronize_session=False)
        )
        if changed != 1:
            db.session.rollback()
            status = db.session.query(Payment.status).filter(Payment.id == payment.id).scalar()
            if status != PAYMENT_COMPLETED:
                raise ConflictError(f'Payment is {status} and cannot be completed')
            current_app.logger.info(f"[payment-complete] payment={payment.id} already completed")
            return CompletionResult(payment, 0, True)

        nights = _configured_nights(payment.amount)
        User.query.filter(User.id == payment.user_id).update({
            User.premium_nights: User.premium_nights + nights,
            User.role: case((User.role == 'admin', User.role), else_='premium'),
            User.updated_at: utcnow(),
        }, synchronize_session=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(payment)
    current_app.logger.info(
        f"[payment-complete] payment={payment.id} user={payment.user_id} nights={nights}"
    )
    return CompletionResult(payment, nights, False)


def fail_payment(payment_id=None, session_id=None) -> Payment:
    payment = find_payment(payment_id=payment_id, session_id=session_id)
    Payment.query.filter(
        Payment.id == payment.id, Payment.status == PAYMENT_PENDING
    ).update({Payment.status: PAYMENT_FAILED, Payment.updated_at: utcnow()}, synchronize_session=False)
    db.session.commit()
    db.session.refresh(payment)
    return payment


def verify_webhook_signature(body: bytes, signature, secret) -> bool:
    if not secret or not signature:
        return False
    if signature.startswith('sha256='):
        signature = signature[len('sha256='):]
    expected = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def handle_webhook_event(event) -> dict:
    """Apply a provider event. Redelivery of a processed event is a no-op."""
    if not isinstance(event, dict) or not event.get('type'):
        raise WebhookError('Malformed event')
    data = event.get('data') or {}
    session_id = data.get('session_id')
    payment_id = data.get('payment_id')

    if event['type'] == 'payment.succeeded':
        if not (session_id or payment_id):
            raise WebhookError('Event does not reference a payment')
        result = complete_payment(payment_id=payment_id, session_id=session_id)
        return {
            'received': True,
            'payment_id': result.payment.id,
            'nights_credited': result.nights_credited,
            'already_completed': result.already_completed,
        }
    if event['type'] == 'payment.failed':
        if not (session_id or payment_id):
            raise WebhookError('Event does not reference a payment')
        payment = fail_payment(payment_id=payment_id, session_id=session_id)
        current_app.logger.info(f"[payment-failed] payment={payment.id} status={payment.status}")
        return {'received': True, 'payment_id': payment.id}

    current_app.logger.info(f"[webhook] unhandled event type={event['type']}")
    return {'received': True}


def use_premium_night(user) -> int:
    """Spend one premium night; returns the nights left."""
    changed = (
        User.query
        .filter(User.id == user.id, User.premium_nights > 0)
        .update({User.premium_nights: User.premium_nights - 1, User.updated_at: utcnow()},
                synchronize_session=False)
    )
    if changed != 1:
        db.session.rollback()
        raise ConflictError('No premium nights left')
    db.session.commit()
    remaining = db.session.query(User.premium_nights).filter(User.id == user.id).scalar()
    current_app.logger.info(f"[premium-night] user={user.id} remaining={remaining}")
    return remaining
