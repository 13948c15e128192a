import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import SQLModel, Field

from servicedesk.core.timeutils import utcnow
from servicedesk.scheduling.interval import Interval


class AppointmentStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in-progress"
    completed = "completed"
    canceled = "canceled"
    no_show = "no-show"


TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.completed, AppointmentStatus.canceled, AppointmentStatus.no_show}
)


class ServiceType(str, Enum):
    consultation = "consultation"
    repair = "repair"
    installation = "installation"
    maintenance = "maintenance"
    troubleshooting = "troubleshooting"
    emergency = "emergency"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Coordinates(SQLModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Location(SQLModel):
    address: str
    city: str
    state: str
    zip_code: str
    coordinates: Optional[Coordinates] = None


class Appointment(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    client_id: int = Field(foreign_key="user.id", index=True)
    technician_id: int = Field(foreign_key="user.id", index=True)

    # intervalo [start_time, end_time) em UTC; colunas DateTime sem fuso (UTC naive)
    start_time: datetime = Field(index=True, sa_type=DateTime)
    end_time: datetime = Field(index=True, sa_type=DateTime)

    status: AppointmentStatus = Field(default=AppointmentStatus.scheduled, index=True)
    service_type: ServiceType
    priority: Priority = Field(default=Priority.medium)

    notes: Optional[str] = Field(default=None, max_length=1000)

    # minutos
    estimated_duration: Optional[int] = None
    actual_duration: Optional[int] = None
    cost: Optional[float] = None

    location: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    # CANCELAMENTO
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)
    canceled_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    canceled_by: Optional[int] = None

    # CONCLUSÃO
    completion_notes: Optional[str] = Field(default=None, max_length=1000)
    rating: Optional[int] = None
    feedback: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration_minutes(self) -> int:
        return self.interval.duration_minutes

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.start_time > now and self.status == AppointmentStatus.scheduled

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.end_time < now and self.status == AppointmentStatus.scheduled


class AppointmentCreate(SQLModel):
    technician_id: int
    start_time: datetime
    end_time: datetime
    service_type: ServiceType
    priority: Priority = Priority.medium
    estimated_duration: Optional[int] = Field(default=None, ge=15, le=480)
    notes: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[Location] = None


class AppointmentUpdate(SQLModel):
    """Campos que podem ser alterados; qualquer outro campo enviado é ignorado."""

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    service_type: Optional[ServiceType] = None
    priority: Optional[Priority] = None
    status: Optional[AppointmentStatus] = None
    estimated_duration: Optional[int] = Field(default=None, ge=15, le=480)
    actual_duration: Optional[int] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)
    location: Optional[Location] = None
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)
    completion_notes: Optional[str] = Field(default=None, max_length=1000)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback: Optional[str] = Field(default=None, max_length=500)


class AppointmentCancel(SQLModel):
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)


class AppointmentRead(SQLModel):
    id: uuid.UUID
    client_id: int
    technician_id: int
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    service_type: ServiceType
    priority: Priority
    notes: Optional[str] = None
    estimated_duration: Optional[int] = None
    actual_duration: Optional[int] = None
    cost: Optional[float] = None
    location: Optional[Dict[str, Any]] = None
    cancellation_reason: Optional[str] = None
    canceled_at: Optional[datetime] = None
    canceled_by: Optional[int] = None
    completion_notes: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # virtuais
    duration_minutes: int
    is_upcoming: bool
    is_overdue: bool

    @classmethod
    def from_appointment(cls, appt: Appointment, now: Optional[datetime] = None) -> "AppointmentRead":
        now = now or utcnow()
        return cls(
            id=appt.id,
            client_id=appt.client_id,
            technician_id=appt.technician_id,
            start_time=appt.start_time,
            end_time=appt.end_time,
            status=appt.status,
            service_type=appt.service_type,
            priority=appt.priority,
            notes=appt.notes,
            estimated_duration=appt.estimated_duration,
            actual_duration=appt.actual_duration,
            cost=appt.cost,
            location=appt.location,
            cancellation_reason=appt.cancellation_reason,
            canceled_at=appt.canceled_at,
            canceled_by=appt.canceled_by,
            completion_notes=appt.completion_notes,
            rating=appt.rating,
            feedback=appt.feedback,
            created_at=appt.created_at,
            updated_at=appt.updated_at,
            duration_minutes=appt.duration_minutes,
            is_upcoming=appt.is_upcoming(now),
            is_overdue=appt.is_overdue(now),
        )
