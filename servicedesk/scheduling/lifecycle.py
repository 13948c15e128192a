"""
Ciclo de vida dos agendamentos: criar, editar e cancelar.

Máquina de estados:
    scheduled -> in-progress -> completed
    scheduled -> canceled        (só via cancel_appointment)
    scheduled -> no-show
completed, canceled e no-show são finais; só admin altera depois disso.

Permissões de acesso (dono do agendamento, técnico responsável) são
checadas na camada HTTP; aqui só entram as regras de agenda.
"""
import uuid
from contextlib import contextmanager, nullcontext
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from servicedesk.core.config import settings
from servicedesk.core.errors import (
    AlreadyCanceled,
    CancellationWindowExpired,
    ImmutableState,
    InvalidTransition,
    NotFound,
)
from servicedesk.core.logging import get_logger
from servicedesk.core.timeutils import utcnow
from servicedesk.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    Priority,
)
from servicedesk.models.user import Actor
from servicedesk.scheduling import events, store
from servicedesk.scheduling.conflicts import check_availability
from servicedesk.scheduling.events import NotificationSink
from servicedesk.scheduling.interval import Interval
from servicedesk.scheduling.locks import technician_lock

logger = get_logger(__name__)

DEFAULT_CANCELLATION_REASON = "No reason provided"

# transições permitidas para quem não é admin (cancelamento tem fluxo próprio)
STATUS_TRANSITIONS = {
    AppointmentStatus.scheduled: frozenset({AppointmentStatus.in_progress, AppointmentStatus.no_show}),
    AppointmentStatus.in_progress: frozenset({AppointmentStatus.completed}),
}

UPDATABLE_FIELDS = (
    "start_time",
    "end_time",
    "notes",
    "service_type",
    "priority",
    "status",
    "estimated_duration",
    "actual_duration",
    "cost",
    "location",
    "cancellation_reason",
    "completion_notes",
    "rating",
    "feedback",
)

# colunas obrigatórias: null no patch significa "não mexer"
NON_NULLABLE_FIELDS = frozenset({"start_time", "end_time", "service_type", "priority", "status"})


@contextmanager
def _booking_guard(session: Session, technician_id: int):
    """Segura o lock do técnico da checagem até o commit; desfaz a transação em erro."""
    with technician_lock(technician_id):
        try:
            yield
        except Exception:
            session.rollback()
            raise


# =========================
# CRIAR
# =========================
def create_appointment(
    session: Session,
    client_id: int,
    data: AppointmentCreate,
    *,
    now: Optional[datetime] = None,
    sink: Optional[NotificationSink] = None,
) -> Appointment:
    now = now or utcnow()
    interval = Interval(data.start_time, data.end_time)

    with _booking_guard(session, data.technician_id):
        check_availability(session, data.technician_id, interval, lock=True)

        estimated_duration = data.estimated_duration
        if not estimated_duration:
            estimated_duration = interval.duration_minutes

        appointment = Appointment(
            client_id=client_id,
            technician_id=data.technician_id,
            start_time=interval.start,
            end_time=interval.end,
            status=AppointmentStatus.scheduled,
            service_type=data.service_type,
            priority=data.priority or Priority.medium,
            estimated_duration=estimated_duration,
            notes=data.notes,
            location=data.location.model_dump() if data.location else None,
            created_at=now,
            updated_at=now,
        )
        session.add(appointment)
        session.commit()

    session.refresh(appointment)

    logger.info(
        "appointment_created",
        appointment_id=str(appointment.id),
        client_id=client_id,
        technician_id=appointment.technician_id,
        start_time=appointment.start_time.isoformat(),
        service_type=appointment.service_type.value,
    )
    events.dispatch(
        sink,
        events.APPOINTMENT_CREATED,
        appointment_id=str(appointment.id),
        client_id=client_id,
        technician_id=appointment.technician_id,
    )
    return appointment


# =========================
# EDITAR
# =========================
def _check_transition(current: AppointmentStatus, new: AppointmentStatus) -> None:
    if new == current:
        return
    if new not in STATUS_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(
            f"Cannot change status from {current.value} to {new.value}"
        )


def update_appointment(
    session: Session,
    appointment_id: uuid.UUID,
    patch: AppointmentUpdate,
    actor: Actor,
    *,
    now: Optional[datetime] = None,
    sink: Optional[NotificationSink] = None,
) -> Appointment:
    now = now or utcnow()

    appointment = store.get_appointment(session, appointment_id)
    if not appointment:
        raise NotFound()

    if appointment.is_terminal and not actor.is_admin:
        raise ImmutableState()

    changes = patch.model_dump(exclude_unset=True)
    new_status = changes.get("status")
    if new_status is not None and not actor.is_admin:
        _check_transition(appointment.status, new_status)

    reschedule = changes.get("start_time") is not None or changes.get("end_time") is not None
    # canceled/completed voltando para a agenda ocupa o horário de novo
    reactivate = (
        new_status is not None
        and appointment.status in store.ACTIVE_EXCLUDED_STATUSES
        and new_status not in store.ACTIVE_EXCLUDED_STATUSES
    )
    recheck = reschedule or reactivate
    guard = _booking_guard(session, appointment.technician_id) if recheck else nullcontext()

    with guard:
        if recheck:
            interval = Interval(
                changes.get("start_time") or appointment.start_time,
                changes.get("end_time") or appointment.end_time,
            )
            check_availability(
                session,
                appointment.technician_id,
                interval,
                exclude_appointment_id=appointment.id,
                lock=True,
            )
            if reschedule:
                changes["start_time"] = interval.start
                changes["end_time"] = interval.end

        for field_name in UPDATABLE_FIELDS:
            if field_name not in changes:
                continue
            value = changes[field_name]
            if value is None and field_name in NON_NULLABLE_FIELDS:
                continue
            setattr(appointment, field_name, value)

        # duração real calculada ao concluir, se não informada
        if new_status == AppointmentStatus.completed and not changes.get("actual_duration"):
            appointment.actual_duration = appointment.duration_minutes

        appointment.updated_at = now
        session.add(appointment)
        session.commit()

    session.refresh(appointment)

    logger.info(
        "appointment_updated",
        appointment_id=str(appointment.id),
        updated_by=actor.id,
        changes=sorted(changes),
    )
    events.dispatch(
        sink,
        events.APPOINTMENT_UPDATED,
        appointment_id=str(appointment.id),
        updated_by=actor.id,
        changes=sorted(changes),
    )
    return appointment


# =========================
# CANCELAR
# =========================
def cancel_appointment(
    session: Session,
    appointment_id: uuid.UUID,
    actor: Actor,
    reason: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    sink: Optional[NotificationSink] = None,
) -> Appointment:
    now = now or utcnow()

    appointment = store.get_appointment(session, appointment_id)
    if not appointment:
        raise NotFound()

    if appointment.status == AppointmentStatus.canceled:
        raise AlreadyCanceled()

    if not actor.is_admin:
        if appointment.is_terminal:
            raise ImmutableState()

        notice_hours = settings.CANCELLATION_NOTICE_HOURS
        if now > appointment.start_time - timedelta(hours=notice_hours):
            raise CancellationWindowExpired(
                f"Appointments can only be canceled at least {notice_hours} hours in advance"
            )

    reason = reason or DEFAULT_CANCELLATION_REASON

    # grava só os campos do cancelamento, sem revalidar o documento inteiro
    session.exec(
        update(Appointment)
        .where(Appointment.id == appointment.id)
        .values(
            status=AppointmentStatus.canceled,
            cancellation_reason=reason,
            canceled_at=now,
            canceled_by=actor.id,
        )
    )
    session.commit()
    session.refresh(appointment)

    logger.info(
        "appointment_canceled",
        appointment_id=str(appointment.id),
        canceled_by=actor.id,
        reason=reason,
    )
    events.dispatch(
        sink,
        events.APPOINTMENT_CANCELED,
        appointment_id=str(appointment.id),
        client_id=appointment.client_id,
        technician_id=appointment.technician_id,
        canceled_by=actor.id,
        reason=reason,
    )
    return appointment
