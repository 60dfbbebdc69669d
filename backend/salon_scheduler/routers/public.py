# backend/salon_scheduler/routers/public.py
"""
Customer-facing endpoints. The phone number on the booking is the only
credential.
"""

from fastapi import APIRouter, Depends

from ..schemas.appointments import (
    AppointmentRead,
    CheckInResponse,
    PhoneLookup,
    SelfCheckIn,
)
from ..services.scheduling import BookingWorkflow
from .appointments import get_workflow

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/check-in", response_model=CheckInResponse)
def self_check_in(
    data: SelfCheckIn,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    appointment, queue_number = workflow.self_check_in(data.appointment_id, data.phone)
    return CheckInResponse(
        appointment=AppointmentRead.model_validate(appointment),
        queue_number=queue_number,
    )


@router.post("/appointments/by-phone", response_model=list[AppointmentRead])
def appointments_by_phone(
    data: PhoneLookup,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    return workflow.find_by_phone(data.phone)
