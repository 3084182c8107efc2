from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from lendcircle.db.base import get_db
from lendcircle.core.dependencies import require_admin
from lendcircle.core.audit import audit
from lendcircle.models.profile import Profile
from lendcircle.schemas.loan import PaymentCreate, PaymentResultResponse, PaymentResponse, LoanResponse
from lendcircle.services import loan as loan_service
from lendcircle.services.errors import LendingCircleError
from lendcircle.api.errors import http_error

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("", response_model=PaymentResultResponse)
def record_payment(
    body: PaymentCreate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Record a loan payment (Admin only).

    One payment per loan per month. If the payment is stored but the loan
    balance or monthly record could not be updated, the response carries a
    ``warning`` instead of failing.
    """
    try:
        result = loan_service.record_payment(
            db,
            body.loan_id,
            body.payment_date,
            body.amount,
            payment_type=body.payment_type,
            principal_component=body.principal_component,
            interest_component=body.interest_component,
            penalty_component=body.penalty_component,
            subscription_component=body.subscription_component,
            notes=body.notes,
            recorded_by=current_user.id
        )
    except (LendingCircleError, IntegrityError) as e:
        raise http_error(e)

    audit(current_user, "Record payment", f"loan={body.loan_id} amount={body.amount} period={result.payment.period_key}")
    return PaymentResultResponse(
        payment=PaymentResponse.model_validate(result.payment),
        loan=LoanResponse.model_validate(result.loan),
        warning=result.warning
    )
