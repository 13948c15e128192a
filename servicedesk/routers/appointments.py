import math
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlmodel import Session, col, select

from servicedesk.core.security import get_current_user, require_roles
from servicedesk.core.timeutils import to_utc_naive, utcnow
from servicedesk.database import get_session
from servicedesk.models.appointment import (
    Appointment,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatus,
    AppointmentUpdate,
    Priority,
    ServiceType,
)
from servicedesk.models.user import Actor, User, UserRole
from servicedesk.scheduling import lifecycle, store
from servicedesk.scheduling.events import NotificationSink, get_notification_sink


router = APIRouter(prefix="/appointments", tags=["appointments"])


def _ensure_party(appt: Appointment, user: User) -> None:
    """Admin, cliente ou técnico do agendamento."""
    if user.role == UserRole.admin:
        return
    if appt.client_id == user.id or appt.technician_id == user.id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


def _load_for(session: Session, appointment_id: uuid.UUID, user: User) -> Appointment:
    appt = store.get_appointment(session, appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Appointment not found")
    _ensure_party(appt, user)
    return appt


def _ensure_future_start(start_time: datetime) -> None:
    if to_utc_naive(start_time) < utcnow():
        raise HTTPException(status_code=400, detail="Start time must be in the future")


# =========================
# CRIAR AGENDAMENTO (CLIENTE / ADMIN)
# =========================
@router.post("/", status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.customer, UserRole.admin)),
    sink: NotificationSink = Depends(get_notification_sink),
):
    if current_user.role != UserRole.admin:
        _ensure_future_start(payload.start_time)

    appt = lifecycle.create_appointment(session, current_user.id, payload, sink=sink)
    return {
        "success": True,
        "message": "Appointment created successfully",
        "data": {"appointment": AppointmentRead.from_appointment(appt)},
    }


# =========================
# LISTAR AGENDAMENTOS
# - cliente: só os próprios
# - técnico: só os da agenda dele
# - admin: todos
# =========================
@router.get("/")
def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    service_type: Optional[ServiceType] = None,
    priority: Optional[Priority] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    sort: str = Query(default="desc", pattern="^(asc|desc)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    conditions = []
    if current_user.role == UserRole.customer:
        conditions.append(Appointment.client_id == current_user.id)
    elif current_user.role == UserRole.technician:
        conditions.append(Appointment.technician_id == current_user.id)

    if status_filter:
        conditions.append(Appointment.status == status_filter)
    if service_type:
        conditions.append(Appointment.service_type == service_type)
    if priority:
        conditions.append(Appointment.priority == priority)
    if start_date:
        conditions.append(Appointment.start_time >= to_utc_naive(start_date))
    if end_date:
        conditions.append(Appointment.start_time <= to_utc_naive(end_date))

    order = col(Appointment.start_time).asc() if sort == "asc" else col(Appointment.start_time).desc()
    appointments = session.exec(
        select(Appointment)
        .where(*conditions)
        .order_by(order)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    total = session.exec(
        select(func.count()).select_from(Appointment).where(*conditions)
    ).one()
    pages = math.ceil(total / limit)

    now = utcnow()
    return {
        "success": True,
        "data": {
            "appointments": [AppointmentRead.from_appointment(a, now) for a in appointments],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": pages,
                "has_next": page < pages,
                "has_prev": page > 1,
            },
        },
    }


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    appt = _load_for(session, appointment_id, current_user)
    return {"success": True, "data": {"appointment": AppointmentRead.from_appointment(appt)}}


# =========================
# EDITAR
# =========================
@router.put("/{appointment_id}")
def update_appointment(
    appointment_id: uuid.UUID,
    payload: AppointmentUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notification_sink),
):
    current = _load_for(session, appointment_id, current_user)

    # remarcação por não-admin só para o futuro (mesmo mudando só o término)
    rescheduling = payload.start_time is not None or payload.end_time is not None
    if current_user.role != UserRole.admin and rescheduling:
        _ensure_future_start(payload.start_time or current.start_time)

    appt = lifecycle.update_appointment(
        session, appointment_id, payload, Actor.from_user(current_user), sink=sink
    )
    return {
        "success": True,
        "message": "Appointment updated successfully",
        "data": {"appointment": AppointmentRead.from_appointment(appt)},
    }


# =========================
# CANCELAR
# - cliente/técnico: até 24h antes
# - admin: sempre
# =========================
@router.patch("/{appointment_id}/cancel")
def cancel_appointment(
    appointment_id: uuid.UUID,
    payload: Optional[AppointmentCancel] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notification_sink),
):
    _load_for(session, appointment_id, current_user)

    reason = payload.cancellation_reason if payload else None
    appt = lifecycle.cancel_appointment(
        session, appointment_id, Actor.from_user(current_user), reason, sink=sink
    )
    return {
        "success": True,
        "message": "Appointment canceled successfully",
        "data": {"appointment": AppointmentRead.from_appointment(appt)},
    }


# rota antiga, mantida por compatibilidade: cancela, não apaga
@router.delete("/{appointment_id}")
def delete_appointment(
    appointment_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notification_sink),
):
    _load_for(session, appointment_id, current_user)

    appt = lifecycle.cancel_appointment(
        session, appointment_id, Actor.from_user(current_user), "Canceled by user", sink=sink
    )
    return {
        "success": True,
        "message": "Appointment canceled successfully",
        "data": {"appointment": AppointmentRead.from_appointment(appt)},
    }
