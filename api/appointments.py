"""Appointment edit and driver reassignment endpoints (operator dashboard)."""

from fastapi import APIRouter

from api.base import success_response
from core.audit import ACTOR_SYSTEM
from core.models import AppointmentEdit


class ReassignmentEditRequest(AppointmentEdit):
    """An appointment edit, optionally computed without being applied."""

    preview: bool = False
    actor: str = ACTOR_SYSTEM


def create_appointments_router(services: dict) -> APIRouter:
    router = APIRouter()

    reassignment = services["reassignment"]

    @router.post("/appointments/{appointment_id}/reassignment")
    def edit_appointment(appointment_id: int, body: ReassignmentEditRequest):
        edit = AppointmentEdit(**body.model_dump(include=set(AppointmentEdit.model_fields)))

        if body.preview:
            plan = reassignment.preview(appointment_id, edit)
            return success_response({
                "applied": False,
                "plan": plan.model_dump(mode="json"),
            }).model_dump(mode="json")

        appointment, plan = reassignment.apply_edit(appointment_id, edit, actor=body.actor)
        return success_response({
            "applied": True,
            "appointment": appointment.model_dump(mode="json"),
            "plan": plan.model_dump(mode="json"),
        }).model_dump(mode="json")

    @router.get("/appointments/{appointment_id}/partner-candidates")
    def partner_candidates(appointment_id: int):
        driver_ids = reassignment.partner_candidates(appointment_id)
        return success_response({"driver_ids": driver_ids}).model_dump(mode="json")

    return router
