# Overview: Service-layer operations for installment collection on credit sales.

from __future__ import annotations

from sqlalchemy import update

from ..errors import AlreadyPaidError, InstallmentNotFoundError, PlanNotFoundError
from ..extensions import db
from ..models import Installment, InstallmentPlan
from ..models.ledger import DIRECTION_DEPOSIT
from ..models.sales import INSTALLMENT_STATUS_PAID, INSTALLMENT_STATUS_PENDING
from mshop.time_utils import utcnow
from .concurrency import unit_of_work
from .ledger_service import append_entry


OPERATION = "SettleInstallment"


def get_plan(plan_id: int) -> InstallmentPlan:
    plan = db.session.get(InstallmentPlan, plan_id)
    if plan is None:
        raise PlanNotFoundError(f"Installment plan {plan_id} not found", entity_id=plan_id)
    return plan


def get_installment(installment_id: int) -> Installment:
    installment = db.session.get(Installment, installment_id)
    if installment is None:
        raise InstallmentNotFoundError(f"Installment {installment_id} not found", entity_id=installment_id)
    return installment


def settle_installment(installment_id: int) -> tuple[Installment, InstallmentPlan]:
    """
    Collect one installment.

    pending -> paid is a compare-and-swap, so two clerks collecting the same
    installment cannot both succeed; the loser gets AlreadyPaidError and
    nothing is deposited twice. The plan's remaining amount is decremented in
    the same statement style, never read-modify-write.
    """
    def _op():
        result = db.session.execute(
            update(Installment)
            .where(Installment.id == installment_id, Installment.status == INSTALLMENT_STATUS_PENDING)
            .values(status=INSTALLMENT_STATUS_PAID, paid_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        installment = (
            db.session.query(Installment).filter_by(id=installment_id).populate_existing().first()
        )
        if installment is None:
            raise InstallmentNotFoundError(f"Installment {installment_id} not found", entity_id=installment_id)
        if not result.rowcount:
            raise AlreadyPaidError(
                f"Installment {installment_id} is already paid",
                entity_id=installment_id,
                details={"paid_at": installment.paid_at.isoformat() if installment.paid_at else None},
            )

        db.session.execute(
            update(InstallmentPlan)
            .where(InstallmentPlan.id == installment.plan_id)
            .values(remaining_amount_cents=InstallmentPlan.remaining_amount_cents - installment.amount_cents)
            .execution_options(synchronize_session=False)
        )

        if installment.amount_cents > 0:
            append_entry(
                DIRECTION_DEPOSIT,
                installment.amount_cents,
                f"installment collection #{installment.id}",
                reference_type="installment",
                reference_id=installment.id,
            )

        plan = (
            db.session.query(InstallmentPlan).filter_by(id=installment.plan_id).populate_existing().one()
        )
        return installment, plan

    installment, plan = unit_of_work(OPERATION, _op)
    return installment, plan
