from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session, SQLModel, select

from servicedesk.core.logging import get_logger
from servicedesk.core.security import get_current_technician, get_current_user
from servicedesk.database import get_session
from servicedesk.models.user import Availability, User, UserRole
from servicedesk.scheduling.availability import compute_available_slots, parse_day

router = APIRouter(prefix="/technicians", tags=["technicians"])

logger = get_logger(__name__)


class AvailabilityUpdate(SQLModel):
    availability: Availability


@router.get("/")
def list_technicians(
    availability: Optional[Availability] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    statement = select(User).where(
        User.role == UserRole.technician,
        User.is_active == True,  # noqa: E712
    )
    if availability:
        statement = statement.where(User.availability == availability)

    technicians = session.exec(statement.order_by(User.username)).all()
    return {
        "success": True,
        "data": {
            "technicians": [
                {
                    "id": t.id,
                    "name": t.username,
                    "email": t.email,
                    "availability": t.availability,
                }
                for t in technicians
            ]
        },
    }


# =========================
# HORÁRIOS DISPONÍVEIS (dia)
# GET /technicians/3/availability?date=2026-02-14
# =========================
@router.get("/{technician_id}/availability")
def get_technician_availability(
    technician_id: int,
    date: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    day = parse_day(date)
    result = compute_available_slots(session, technician_id, day)
    return {"success": True, "data": result.to_dict()}


# técnico muda o próprio status (available | busy | offline)
@router.patch("/availability")
def update_my_availability(
    payload: AvailabilityUpdate,
    session: Session = Depends(get_session),
    current_technician: User = Depends(get_current_technician),
):
    current_technician.availability = payload.availability
    session.add(current_technician)
    session.commit()
    session.refresh(current_technician)

    logger.info(
        "technician_availability_changed",
        technician_id=current_technician.id,
        availability=payload.availability.value,
    )
    return {
        "success": True,
        "message": "Availability updated successfully",
        "data": {
            "id": current_technician.id,
            "availability": current_technician.availability,
        },
    }
