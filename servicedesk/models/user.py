from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from servicedesk.core.timeutils import utcnow


class UserRole(str, Enum):
    customer = "customer"
    technician = "technician"
    admin = "admin"


class Availability(str, Enum):
    available = "available"
    busy = "busy"
    offline = "offline"


class UserBase(SQLModel):
    username: str
    email: str = Field(index=True, unique=True)
    role: UserRole = Field(default=UserRole.customer, index=True)
    phone: Optional[str] = None


class User(UserBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    password_hash: str

    is_active: bool = Field(default=True, index=True)
    # só faz sentido para técnicos; consultado antes de cada agendamento
    availability: Availability = Field(default=Availability.available, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


class UserCreate(UserBase):
    password: str


class TechnicianSummary(SQLModel):
    id: int
    name: str
    availability: Availability


@dataclass(frozen=True)
class Actor:
    """Quem está executando a operação (já autenticado pela camada HTTP)."""

    id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role)
