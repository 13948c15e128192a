"""
Consultas de agendamentos/técnicos usadas pelo motor de agenda.

Tudo passa pela Session do SQLModel recebida do chamador; nenhuma função
aqui faz commit.
"""
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import Session, col, select

from servicedesk.models.appointment import Appointment, AppointmentStatus
from servicedesk.models.user import User, UserRole


# agendamentos nesses status não ocupam a agenda do técnico
ACTIVE_EXCLUDED_STATUSES = (AppointmentStatus.canceled, AppointmentStatus.completed)


def get_appointment(session: Session, appointment_id: uuid.UUID) -> Optional[Appointment]:
    return session.get(Appointment, appointment_id)


def get_technician(
    session: Session,
    technician_id: int,
    *,
    for_update: bool = False,
) -> Optional[User]:
    """Técnico ativo pelo id.

    for_update=True trava a linha do técnico até o fim da transação
    (ignorado pelo SQLite, que já serializa escritas).
    """
    statement = select(User).where(
        User.id == technician_id,
        User.role == UserRole.technician,
        User.is_active == True,  # noqa: E712
    )
    if for_update:
        statement = statement.with_for_update()
    return session.exec(statement).first()


def find_by_technician_excluding_statuses(
    session: Session,
    technician_id: int,
    excluded_statuses: Iterable[AppointmentStatus] = ACTIVE_EXCLUDED_STATUSES,
    exclude_id: Optional[uuid.UUID] = None,
) -> List[Appointment]:
    statement = select(Appointment).where(
        Appointment.technician_id == technician_id,
        col(Appointment.status).not_in(list(excluded_statuses)),
    )
    if exclude_id is not None:
        statement = statement.where(Appointment.id != exclude_id)

    # ordem fixa: o primeiro conflito reportado é sempre o mesmo
    statement = statement.order_by(col(Appointment.start_time), col(Appointment.id))
    return list(session.exec(statement).all())


def find_by_technician_and_date_range(
    session: Session,
    technician_id: int,
    start: datetime,
    end: datetime,
    excluded_statuses: Iterable[AppointmentStatus] = ACTIVE_EXCLUDED_STATUSES,
) -> List[Appointment]:
    """Agendamentos que encostam em [start, end], inclusive os que cobrem o período todo."""
    statement = (
        select(Appointment)
        .where(
            Appointment.technician_id == technician_id,
            col(Appointment.status).not_in(list(excluded_statuses)),
            Appointment.start_time <= end,
            Appointment.end_time >= start,
        )
        .order_by(col(Appointment.start_time), col(Appointment.id))
    )
    return list(session.exec(statement).all())
