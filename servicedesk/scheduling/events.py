"""
Notificações disparadas depois do commit.

Falha no envio nunca desfaz a alteração já gravada: o erro só vai para o log.
"""
from typing import Any, Dict, List, Optional, Tuple

from servicedesk.core.logging import get_logger

logger = get_logger(__name__)

APPOINTMENT_CREATED = "appointment.created"
APPOINTMENT_UPDATED = "appointment.updated"
APPOINTMENT_CANCELED = "appointment.canceled"
SUPPORT_REQUEST_ASSIGNED = "support_request.assigned"
SUPPORT_REQUEST_STATUS_CHANGED = "support_request.status_changed"


class NotificationSink:
    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LogNotificationSink(NotificationSink):
    """Padrão: só registra o evento (e-mail/websocket ficam fora deste serviço)."""

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        logger.info("notification", notification_event=event, **payload)


class RecordingNotificationSink(NotificationSink):
    """Guarda os eventos em memória; útil em testes e scripts."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))


default_sink: NotificationSink = LogNotificationSink()


def get_notification_sink() -> NotificationSink:
    return default_sink


def dispatch(sink: Optional[NotificationSink], event: str, **payload: Any) -> None:
    sink = sink or default_sink
    try:
        sink.notify(event, payload)
    except Exception:
        logger.exception("notification_failed", notification_event=event)
