# Overview: Pure installment amortization; no database access.

"""
Installment Schedule Builder

Formulas (all money in integer cents, rate in basis points):

    interest  = round_half_up((principal - down_payment) * rate_bps / 10000)
    total     = principal + interest
    remaining = total - down_payment
    monthly   = remaining // months          (0 when months == 0)

Exactly `months` installments are generated. Installment i (1-based) falls
due `i` calendar months after the start date, on `due_day` (clamped to the
month's last day). Every installment is `monthly` except the last, which
absorbs the division remainder so the schedule sums to `remaining` exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ..errors import InvalidTermError, ValidationError
from mshop.time_utils import add_months_on_day


@dataclass(frozen=True)
class ScheduledInstallment:
    sequence: int
    due_date: date
    amount_cents: int


@dataclass(frozen=True)
class InstallmentSchedule:
    principal_cents: int
    down_payment_cents: int
    interest_rate_bps: int
    interest_amount_cents: int
    total_amount_cents: int
    remaining_amount_cents: int
    monthly_amount_cents: int
    months: int
    due_day: int
    start_date: date
    installments: list[ScheduledInstallment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "principal_cents": self.principal_cents,
            "down_payment_cents": self.down_payment_cents,
            "interest_rate_bps": self.interest_rate_bps,
            "interest_amount_cents": self.interest_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "monthly_amount_cents": self.monthly_amount_cents,
            "months": self.months,
            "due_day": self.due_day,
            "start_date": self.start_date.isoformat(),
            "installments": [
                {
                    "sequence": i.sequence,
                    "due_date": i.due_date.isoformat(),
                    "amount_cents": i.amount_cents,
                }
                for i in self.installments
            ],
        }


def _round_half_up_div(numerator: int, denominator: int) -> int:
    # nearest-cent rounding (half-up) for non-negative numerators
    return (numerator + denominator // 2) // denominator


def build_schedule(
    *,
    principal_cents: int,
    down_payment_cents: int,
    interest_rate_bps: int,
    months: int,
    due_day: int,
    start_date: date,
) -> InstallmentSchedule:
    if principal_cents < 0:
        raise ValidationError("principal must not be negative")
    if down_payment_cents < 0:
        raise ValidationError("down payment must not be negative")
    if down_payment_cents > principal_cents:
        raise ValidationError(
            "down payment cannot exceed the sale total",
            details={"principal_cents": principal_cents, "down_payment_cents": down_payment_cents},
        )
    if interest_rate_bps < 0:
        raise ValidationError("interest rate must not be negative")
    if not 1 <= due_day <= 31:
        raise InvalidTermError("due day must be between 1 and 31", details={"due_day": due_day})
    if months < 0:
        raise InvalidTermError("number of months must not be negative", details={"months": months})

    financed = principal_cents - down_payment_cents
    interest = _round_half_up_div(financed * interest_rate_bps, 10_000)
    total = principal_cents + interest
    remaining = total - down_payment_cents

    if months == 0:
        if remaining > 0:
            raise InvalidTermError(
                "number of months must be positive while an amount remains",
                details={"months": months, "remaining_amount_cents": remaining},
            )
        monthly = 0
    else:
        monthly = remaining // months

    installments = []
    for i in range(1, months + 1):
        amount = monthly
        if i == months:
            amount = remaining - monthly * (months - 1)
        installments.append(
            ScheduledInstallment(
                sequence=i,
                due_date=add_months_on_day(start_date, i, due_day),
                amount_cents=amount,
            )
        )

    return InstallmentSchedule(
        principal_cents=principal_cents,
        down_payment_cents=down_payment_cents,
        interest_rate_bps=interest_rate_bps,
        interest_amount_cents=interest,
        total_amount_cents=total,
        remaining_amount_cents=remaining,
        monthly_amount_cents=monthly,
        months=months,
        due_day=due_day,
        start_date=start_date,
        installments=installments,
    )
