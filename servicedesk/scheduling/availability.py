"""
Cálculo de slots livres/ocupados de um técnico em um dia (UTC).

Os slots são rótulos de hora cheia ("09:00", "10:00", ...). Um agendamento
ocupa todas as horas entre a hora de início e a hora de término; se o
término cai exatamente na hora cheia (minutos == 0), essa última hora fica
livre.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence, Union

from sqlmodel import Session

from servicedesk.core.config import settings
from servicedesk.core.errors import InvalidDate
from servicedesk.core.timeutils import to_utc_naive
from servicedesk.models.appointment import Appointment
from servicedesk.models.user import TechnicianSummary
from servicedesk.scheduling import store
from servicedesk.scheduling.conflicts import ensure_technician_available

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class SlotAvailability:
    technician: TechnicianSummary
    date: date
    booked_slots: List[str] = field(default_factory=list)
    available_slots: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "technician": self.technician.model_dump(),
            "date": self.date.isoformat(),
            "booked_slots": self.booked_slots,
            "available_slots": self.available_slots,
        }


def parse_day(value: Union[str, date, datetime]) -> date:
    """Aceita YYYY-MM-DD ou datetime ISO; devolve a data em UTC."""
    if isinstance(value, datetime):
        return to_utc_naive(value).date()
    if isinstance(value, date):
        return value

    value = value.strip()
    try:
        if DATE_ONLY.match(value):
            return date.fromisoformat(value)
        # "Z" não é aceito por fromisoformat em versões antigas do Python
        return to_utc_naive(datetime.fromisoformat(value.replace("Z", "+00:00"))).date()
    except ValueError:
        raise InvalidDate()


def day_bounds(day: date):
    start = datetime.combine(day, time(0, 0))
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


def _slot_hour(label: str) -> int:
    return int(label.split(":", 1)[0])


def _booked_hours(appt: Appointment, day_start: datetime, day_end: datetime) -> range:
    first_hour = 0 if appt.start_time < day_start else appt.start_time.hour

    if appt.end_time > day_end:
        last_hour = 23
    elif appt.end_time.minute > 0:
        last_hour = appt.end_time.hour
    else:
        # termina na hora cheia: essa hora não é ocupada
        last_hour = appt.end_time.hour - 1

    return range(first_hour, last_hour + 1)


def compute_available_slots(
    session: Session,
    technician_id: int,
    day: date,
    working_hours: Optional[Sequence[str]] = None,
) -> SlotAvailability:
    if working_hours is None:
        working_hours = settings.WORKING_HOURS

    technician = ensure_technician_available(session, technician_id)

    day_start, day_end = day_bounds(day)
    appointments = store.find_by_technician_and_date_range(
        session, technician_id, day_start, day_end
    )

    booked_hours = set()
    for appt in appointments:
        booked_hours.update(_booked_hours(appt, day_start, day_end))

    booked = [slot for slot in working_hours if _slot_hour(slot) in booked_hours]
    available = [slot for slot in working_hours if _slot_hour(slot) not in booked_hours]

    return SlotAvailability(
        technician=TechnicianSummary(
            id=technician.id,
            name=technician.username,
            availability=technician.availability,
        ),
        date=day,
        booked_slots=booked,
        available_slots=available,
    )
