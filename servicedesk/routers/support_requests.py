import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from servicedesk.core.security import get_current_user, require_roles
from servicedesk.database import get_session
from servicedesk.models.support_request import (
    SupportRequest,
    SupportRequestAssign,
    SupportRequestCreate,
    SupportRequestStatusUpdate,
)
from servicedesk.models.user import User, UserRole
from servicedesk.scheduling.events import NotificationSink, get_notification_sink
from servicedesk.services import support_requests

router = APIRouter(prefix="/support-requests", tags=["support-requests"])


def _load_for(session: Session, request_id: uuid.UUID, user: User) -> SupportRequest:
    request = session.get(SupportRequest, request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Support request not found")

    if user.role == UserRole.customer and request.customer_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    # técnico vê os chamados livres e os atribuídos a ele
    if (
        user.role == UserRole.technician
        and request.assigned_technician_id is not None
        and request.assigned_technician_id != user.id
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    return request


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_support_request(
    payload: SupportRequestCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.customer)),
):
    request = support_requests.create_support_request(session, current_user.id, payload)
    return {"message": "Support request created successfully", "request": request}


@router.get("/{request_id}")
def get_support_request(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return _load_for(session, request_id, current_user)


@router.post("/{request_id}/assign")
def assign_technician(
    request_id: uuid.UUID,
    payload: SupportRequestAssign,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.technician, UserRole.admin)),
    sink: NotificationSink = Depends(get_notification_sink),
):
    request = support_requests.assign_technician(
        session,
        request_id,
        payload.technician_id,
        payload.estimated_resolution_time,
        sink=sink,
    )
    return {"message": "Technician assigned successfully", "request": request}


@router.patch("/{request_id}/status")
def update_status(
    request_id: uuid.UUID,
    payload: SupportRequestStatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notification_sink),
):
    _load_for(session, request_id, current_user)

    request = support_requests.update_support_request_status(
        session, request_id, payload.status, sink=sink
    )
    return {"message": "Status updated successfully", "request": request}
