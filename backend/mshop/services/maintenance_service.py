# Overview: Service-layer operations for the repair desk; job lifecycle and fee collection.

from __future__ import annotations

from sqlalchemy import update

from ..errors import RepairJobNotFoundError, StaleRepairJobStateError
from ..extensions import db
from ..models import RepairJob
from ..models.ledger import DIRECTION_DEPOSIT
from ..models.treasury import REPAIR_STATUS_DELIVERED, REPAIR_STATUS_RECEIVED, REPAIR_STATUS_REPAIRED
from ..validation import ModelValidationPolicy, validate_payload
from mshop.time_utils import utcnow
from .concurrency import unit_of_work
from .ledger_service import append_entry


REPAIR_JOB_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "customer_phone", "device_type", "problem_description", "cost_cents"},
    required_on_create={"customer_name", "device_type"},
)


def get_repair_job(job_id: int) -> RepairJob:
    job = db.session.get(RepairJob, job_id)
    if job is None:
        raise RepairJobNotFoundError(f"Repair job {job_id} not found", entity_id=job_id)
    return job


def list_repair_jobs(*, status: str | None = None) -> list[RepairJob]:
    q = RepairJob.query
    if status:
        q = q.filter_by(status=status)
    return q.order_by(RepairJob.received_at.desc(), RepairJob.id.desc()).all()


def receive_repair_job(payload: dict) -> RepairJob:
    data = validate_payload(model=RepairJob, payload=payload, policy=REPAIR_JOB_POLICY)

    def _op():
        job = RepairJob(status=REPAIR_STATUS_RECEIVED, received_at=utcnow(), **data)
        db.session.add(job)
        db.session.flush()
        return job

    return unit_of_work("ReceiveRepairJob", _op)


def _transition_job(job_id: int, expected: str, new_status: str, stamp_field: str) -> RepairJob:
    result = db.session.execute(
        update(RepairJob)
        .where(RepairJob.id == job_id, RepairJob.status == expected)
        .values(status=new_status, **{stamp_field: utcnow()})
        .execution_options(synchronize_session=False)
    )
    job = db.session.query(RepairJob).filter_by(id=job_id).populate_existing().first()
    if job is None:
        raise RepairJobNotFoundError(f"Repair job {job_id} not found", entity_id=job_id)
    if not result.rowcount:
        raise StaleRepairJobStateError(
            f"Repair job {job_id} is {job.status}, expected {expected}",
            entity_id=job_id,
            details={"status": job.status, "expected": expected},
        )
    return job


def mark_repaired(job_id: int) -> RepairJob:
    return unit_of_work(
        "MarkRepaired",
        lambda: _transition_job(job_id, REPAIR_STATUS_RECEIVED, REPAIR_STATUS_REPAIRED, "repaired_at"),
    )


def deliver_repair_job(job_id: int) -> RepairJob:
    """Hand the device back and collect the repair fee into the main treasury."""
    def _op():
        job = _transition_job(job_id, REPAIR_STATUS_REPAIRED, REPAIR_STATUS_DELIVERED, "delivered_at")
        if job.cost_cents > 0:
            append_entry(
                DIRECTION_DEPOSIT,
                job.cost_cents,
                f"repair collection #{job.id}",
                reference_type="repair_job",
                reference_id=job.id,
            )
        return job

    return unit_of_work("DeliverRepairJob", _op)
