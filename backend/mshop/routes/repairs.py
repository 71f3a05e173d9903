# Overview: Flask API routes for the repair desk.

from flask import Blueprint, jsonify, request

from ..services import maintenance_service
from .responses import get_json_body, json_error


repairs_bp = Blueprint("repairs", __name__, url_prefix="/api/repairs")


@repairs_bp.get("")
def list_repairs_route():
    try:
        jobs = maintenance_service.list_repair_jobs(status=request.args.get("status"))
        return jsonify({"items": [j.to_dict() for j in jobs]}), 200
    except Exception as e:
        return json_error(e, "list repair jobs")


@repairs_bp.post("")
def receive_repair_route():
    try:
        job = maintenance_service.receive_repair_job(get_json_body())
        return jsonify({"repair_job": job.to_dict()}), 201
    except Exception as e:
        return json_error(e, "receive repair job")


@repairs_bp.post("/<int:job_id>/repaired")
def mark_repaired_route(job_id: int):
    try:
        job = maintenance_service.mark_repaired(job_id)
        return jsonify({"repair_job": job.to_dict()}), 200
    except Exception as e:
        return json_error(e, "mark repair job repaired")


@repairs_bp.post("/<int:job_id>/deliver")
def deliver_repair_route(job_id: int):
    try:
        job = maintenance_service.deliver_repair_job(job_id)
        return jsonify({"repair_job": job.to_dict()}), 200
    except Exception as e:
        return json_error(e, "deliver repair job")
