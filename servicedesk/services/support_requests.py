import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from servicedesk.core.errors import NotFound, TechnicianNotFound
from servicedesk.core.logging import get_logger
from servicedesk.core.timeutils import utcnow
from servicedesk.models.support_request import (
    SupportRequest,
    SupportRequestCreate,
    SupportRequestStatus,
)
from servicedesk.scheduling import events, store
from servicedesk.scheduling.events import NotificationSink

logger = get_logger(__name__)

DEFAULT_RESOLUTION_HOURS = 24


def _get_request(session: Session, request_id: uuid.UUID) -> SupportRequest:
    request = session.get(SupportRequest, request_id)
    if not request:
        raise NotFound("Support request not found")
    return request


def create_support_request(
    session: Session,
    customer_id: int,
    data: SupportRequestCreate,
) -> SupportRequest:
    request = SupportRequest(
        customer_id=customer_id,
        title=data.title,
        description=data.description,
        category=data.category,
        priority=data.priority,
        status=SupportRequestStatus.open,
    )
    session.add(request)
    session.commit()
    session.refresh(request)

    logger.info("support_request_created", request_id=str(request.id), customer_id=customer_id)
    return request


def assign_technician(
    session: Session,
    request_id: uuid.UUID,
    technician_id: int,
    estimated_resolution_time: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
    sink: Optional[NotificationSink] = None,
) -> SupportRequest:
    """Atribui o chamado a um técnico e coloca em andamento."""
    request = _get_request(session, request_id)

    technician = store.get_technician(session, technician_id)
    if not technician:
        raise TechnicianNotFound()

    request.assigned_technician_id = technician.id
    request.status = SupportRequestStatus.in_progress
    request.estimated_resolution_time = estimated_resolution_time or DEFAULT_RESOLUTION_HOURS
    request.updated_at = now or utcnow()

    session.add(request)
    session.commit()
    session.refresh(request)

    logger.info(
        "support_request_assigned",
        request_id=str(request.id),
        technician_id=technician.id,
    )
    events.dispatch(
        sink,
        events.SUPPORT_REQUEST_ASSIGNED,
        request_id=str(request.id),
        customer_id=request.customer_id,
        technician_id=technician.id,
    )
    return request


def update_support_request_status(
    session: Session,
    request_id: uuid.UUID,
    status: SupportRequestStatus,
    *,
    now: Optional[datetime] = None,
    sink: Optional[NotificationSink] = None,
) -> SupportRequest:
    now = now or utcnow()
    request = _get_request(session, request_id)

    old_status = request.status
    request.status = status

    if status == SupportRequestStatus.resolved:
        request.resolved_at = now
    elif status == SupportRequestStatus.closed:
        request.closed_at = now

    request.updated_at = now
    session.add(request)
    session.commit()
    session.refresh(request)

    logger.info(
        "support_request_status_changed",
        request_id=str(request.id),
        old_status=old_status.value,
        new_status=status.value,
    )
    events.dispatch(
        sink,
        events.SUPPORT_REQUEST_STATUS_CHANGED,
        request_id=str(request.id),
        old_status=old_status.value,
        new_status=status.value,
    )
    return request
