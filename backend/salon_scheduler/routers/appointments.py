# backend/salon_scheduler/routers/appointments.py
"""
Appointment write endpoints. Every route is one BookingWorkflow call,
one transaction.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Appointments
from ..schemas.appointments import (
    AppointmentAssign,
    AppointmentCancel,
    AppointmentCheckIn,
    AppointmentCreate,
    AppointmentDuplicate,
    AppointmentMove,
    AppointmentRead,
    CheckInResponse,
)
from ..services.events import EventEmitter, get_emitter
from ..services.scheduling import BookingWorkflow

router = APIRouter(prefix="/appointments", tags=["appointments"])


def get_workflow(
    db: Session = Depends(get_db),
    emit: EventEmitter = Depends(get_emitter),
) -> BookingWorkflow:
    return BookingWorkflow(db, events=emit)


@router.get("/{id}", response_model=AppointmentRead)
def get_appointment(id: int, db: Session = Depends(get_db)):
    obj = db.get(Appointments, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreate,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    return workflow.create_booking(**data.model_dump())


@router.post("/{id}/move", response_model=AppointmentRead)
def move_appointment(
    id: int,
    data: AppointmentMove,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    return workflow.move_booking(id, data.staff_id, data.date_start)


@router.post("/{id}/assign", response_model=AppointmentRead)
def assign_appointment(
    id: int,
    data: AppointmentAssign,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    return workflow.assign_staff(id, data.staff_id)


@router.post(
    "/{id}/duplicate",
    response_model=AppointmentRead,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_appointment(
    id: int,
    data: AppointmentDuplicate,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    return workflow.duplicate_booking(id, data.customer_name, data.customer_phone)


@router.post("/{id}/check-in", response_model=CheckInResponse)
def check_in_appointment(
    id: int,
    data: AppointmentCheckIn | None = None,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    staff_id = data.staff_id if data else None
    appointment, queue_number = workflow.check_in(id, staff_id=staff_id)
    return CheckInResponse(
        appointment=AppointmentRead.model_validate(appointment),
        queue_number=queue_number,
    )


@router.post("/{id}/start", response_model=AppointmentRead)
def start_appointment(id: int, workflow: BookingWorkflow = Depends(get_workflow)):
    return workflow.start_service(id)


@router.post("/{id}/complete", response_model=AppointmentRead)
def complete_appointment(id: int, workflow: BookingWorkflow = Depends(get_workflow)):
    return workflow.complete_service(id)


@router.post("/{id}/cancel", response_model=AppointmentRead)
def cancel_appointment(
    id: int,
    data: AppointmentCancel | None = None,
    workflow: BookingWorkflow = Depends(get_workflow),
):
    return workflow.cancel_booking(id, reason=data.reason if data else None)
