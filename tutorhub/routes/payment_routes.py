import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth.dependencies import get_verified_identity
from tutorhub.auth.guards import authorize, require_admin, self_access
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db
from tutorhub.models.payment import Payment
from tutorhub.models.study_session import StudySession
from tutorhub.payments import gateway
from tutorhub.routes.common import internal_error, normalize_email

router = APIRouter(tags=['payments'])
logger = logging.getLogger(__name__)


class PaymentIntentRequest(BaseModel):
    amount: float
    currency: str | None = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, value: float) -> float:
        if value <= 0:
            raise ValueError('Amount must be greater than zero.')
        return value


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str


class StorePaymentRequest(BaseModel):
    amount: float
    transaction_id: str
    session_id: int | None = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, value: float) -> float:
        # Zero is allowed: free sessions are unlocked by a zero-amount payment.
        if value < 0:
            raise ValueError('Amount cannot be negative.')
        return value

    @field_validator('transaction_id')
    @classmethod
    def validate_transaction_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Transaction id is required.')
        return normalized


class PaymentResponse(BaseModel):
    id: int
    email: str
    amount: float
    transaction_id: str
    session_id: int | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('/payments/create-payment-intent', response_model=PaymentIntentResponse)
def create_payment_intent(data: PaymentIntentRequest):
    try:
        return gateway.create_payment_intent(data.amount, data.currency)
    except gateway.PaymentGatewayError as exc:
        raise internal_error(exc, 'Payment intent creation failed') from exc


@router.post('/payments/store-payment', response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def store_payment(
    data: StorePaymentRequest,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        existing = db.query(Payment).filter(Payment.transaction_id == data.transaction_id).first()
        if existing is not None:
            if existing.email != identity.email:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='This transaction is already recorded.',
                )
            return existing

        if data.session_id is not None:
            session = db.query(StudySession.id).filter(StudySession.id == data.session_id).first()
            if session is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Session not found.')

        payment = Payment(
            email=identity.email,
            amount=data.amount,
            transaction_id=data.transaction_id,
            session_id=data.session_id,
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This transaction is already recorded.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Storing payment failed') from exc

    logger.info('Payment %s recorded for %s', payment.transaction_id, identity.email)
    return payment


@router.get(
    '/payments/user/{email}',
    response_model=list[PaymentResponse],
    dependencies=[Depends(authorize(self_access('email')))],
)
def list_user_payments(email: str, db: Session = Depends(get_db)):
    try:
        return db.query(Payment).filter(
            Payment.email == normalize_email(email),
        ).order_by(Payment.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing payments failed') from exc


@router.get('/payments', response_model=list[PaymentResponse], dependencies=[Depends(require_admin)])
def list_payments(db: Session = Depends(get_db)):
    try:
        return db.query(Payment).order_by(Payment.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing payments failed') from exc
