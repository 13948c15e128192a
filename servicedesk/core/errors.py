"""
Erros de regra de negócio da agenda.

Cada erro carrega o status HTTP usado pela API; o motor de agendamento não
depende do FastAPI, só `register_exception_handlers` conhece a app.
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class SchedulingError(Exception):
    status_code = 400
    default_message = "Scheduling error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": type(self).__name__, "message": self.message}


class TechnicianUnavailable(SchedulingError):
    status_code = 400
    default_message = "Technician is not available"


class TechnicianNotFound(TechnicianUnavailable):
    status_code = 404
    default_message = "Technician not found or not active"


class SchedulingConflict(SchedulingError):
    status_code = 409
    default_message = "Technician has a conflicting appointment"

    def __init__(self, appointment_id, interval):
        self.appointment_id = appointment_id
        self.interval = interval
        super().__init__(
            f"Technician has a conflicting appointment from {interval.start.isoformat()} "
            f"to {interval.end.isoformat()}. Please choose a different time slot."
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["conflict"] = {
            "appointment_id": str(self.appointment_id),
            "start_time": self.interval.start.isoformat(),
            "end_time": self.interval.end.isoformat(),
        }
        return data


class NotFound(SchedulingError):
    status_code = 404
    default_message = "Appointment not found"


class AlreadyCanceled(SchedulingError):
    status_code = 400
    default_message = "Appointment is already canceled"


class CancellationWindowExpired(SchedulingError):
    status_code = 400
    default_message = "Appointments can only be canceled at least 24 hours in advance"


class ImmutableState(SchedulingError):
    status_code = 403
    default_message = "Cannot modify completed, canceled or no-show appointments"


class InvalidInterval(SchedulingError):
    status_code = 400
    default_message = "End time must be after start time"


class InvalidTransition(SchedulingError):
    status_code = 400
    default_message = "Status transition not allowed"


class InvalidDate(SchedulingError):
    status_code = 400
    default_message = "Invalid date format. Use YYYY-MM-DD format."


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
