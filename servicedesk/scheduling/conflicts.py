import uuid
from typing import Optional

from sqlmodel import Session

from servicedesk.core.errors import SchedulingConflict, TechnicianNotFound, TechnicianUnavailable
from servicedesk.core.logging import get_logger
from servicedesk.models.user import Availability, User
from servicedesk.scheduling import store
from servicedesk.scheduling.interval import Interval

logger = get_logger(__name__)


def ensure_technician_available(
    session: Session,
    technician_id: int,
    *,
    lock: bool = False,
) -> User:
    technician = store.get_technician(session, technician_id, for_update=lock)
    if not technician:
        raise TechnicianNotFound()

    if technician.availability != Availability.available:
        raise TechnicianUnavailable()

    return technician


def check_availability(
    session: Session,
    technician_id: int,
    interval: Interval,
    exclude_appointment_id: Optional[uuid.UUID] = None,
    *,
    lock: bool = False,
) -> User:
    """Valida que o técnico pode receber o intervalo e devolve o técnico.

    - técnico precisa existir, estar ativo e com availability=available
    - nenhum agendamento ativo (fora canceled/completed) pode sobrepor o intervalo
    - exclude_appointment_id: o próprio agendamento, em edições
    """
    technician = ensure_technician_available(session, technician_id, lock=lock)

    existing = store.find_by_technician_excluding_statuses(
        session,
        technician_id,
        exclude_id=exclude_appointment_id,
    )

    for appt in existing:
        if appt.interval.overlaps(interval):
            logger.info(
                "scheduling_conflict",
                technician_id=technician_id,
                requested_start=interval.start.isoformat(),
                requested_end=interval.end.isoformat(),
                conflicting_appointment_id=str(appt.id),
            )
            raise SchedulingConflict(appt.id, appt.interval)

    return technician
