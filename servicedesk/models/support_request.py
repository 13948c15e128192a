import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from servicedesk.core.timeutils import utcnow
from servicedesk.models.appointment import Priority


class SupportRequestStatus(str, Enum):
    open = "open"
    in_progress = "in-progress"
    pending_customer = "pending-customer"
    resolved = "resolved"
    closed = "closed"


class SupportCategory(str, Enum):
    technical_support = "technical-support"
    billing = "billing"
    account = "account"
    feature_request = "feature-request"
    bug_report = "bug-report"
    general_inquiry = "general-inquiry"


class SupportRequestBase(SQLModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    category: SupportCategory = SupportCategory.general_inquiry
    priority: Priority = Priority.medium


class SupportRequest(SupportRequestBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    customer_id: int = Field(foreign_key="user.id", index=True)
    assigned_technician_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    status: SupportRequestStatus = Field(default=SupportRequestStatus.open, index=True)
    # horas
    estimated_resolution_time: Optional[int] = None

    resolved_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    closed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class SupportRequestCreate(SupportRequestBase):
    pass


class SupportRequestAssign(SQLModel):
    technician_id: int
    estimated_resolution_time: Optional[int] = Field(default=None, ge=1, le=168)


class SupportRequestStatusUpdate(SQLModel):
    status: SupportRequestStatus
