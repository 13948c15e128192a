from datetime import datetime, timedelta

from servicedesk.core.timeutils import utcnow
from servicedesk.models.appointment import AppointmentStatus
from servicedesk.models.user import Availability, UserRole
from servicedesk.scheduling import events


def _future(days=3, hour=10, minute=0):
    base = utcnow() + timedelta(days=days)
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _payload(technician, start, end, **extra):
    data = {
        "technician_id": technician.id,
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
        "service_type": "repair",
    }
    data.update(extra)
    return data


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_requires_authentication(client):
    response = client.get("/appointments/")
    assert response.status_code == 401


# =========================
# USUÁRIOS
# =========================
def test_register_user(client):
    response = client.post(
        "/users/",
        json={"username": "ana", "email": "ana@test.local", "password": "secret123", "role": "technician"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "technician"
    assert "password_hash" not in data


def test_register_duplicate_email(client, customer):
    response = client.post(
        "/users/",
        json={"username": "again", "email": customer.email, "password": "secret123"},
    )
    assert response.status_code == 400


def test_cannot_self_register_admin(client):
    response = client.post(
        "/users/",
        json={"username": "root", "email": "root@test.local", "password": "secret123", "role": "admin"},
    )
    assert response.status_code == 403


def test_me(client, customer, login_as):
    login_as(customer)
    response = client.get("/users/me")

    assert response.status_code == 200
    assert response.json()["id"] == customer.id


# =========================
# AGENDAMENTOS
# =========================
def test_create_appointment(client, customer, technician, login_as, sink):
    login_as(customer)
    start = _future()

    response = client.post("/appointments/", json=_payload(technician, start, start + timedelta(minutes=90)))

    assert response.status_code == 201
    appt = response.json()["data"]["appointment"]
    assert appt["status"] == "scheduled"
    assert appt["client_id"] == customer.id
    assert appt["estimated_duration"] == 90
    assert appt["duration_minutes"] == 90
    assert appt["is_upcoming"] is True
    assert sink.events[0][0] == events.APPOINTMENT_CREATED


def test_create_conflict_returns_409(client, customer, technician, login_as):
    login_as(customer)
    start = _future()
    first = client.post("/appointments/", json=_payload(technician, start, start + timedelta(hours=1)))

    response = client.post(
        "/appointments/",
        json=_payload(technician, start + timedelta(minutes=30), start + timedelta(hours=2)),
    )

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "SchedulingConflict"
    assert body["conflict"]["appointment_id"] == first.json()["data"]["appointment"]["id"]


def test_create_touching_is_allowed(client, customer, technician, login_as):
    login_as(customer)
    start = _future()
    client.post("/appointments/", json=_payload(technician, start, start + timedelta(hours=1)))

    response = client.post(
        "/appointments/",
        json=_payload(technician, start + timedelta(hours=1), start + timedelta(hours=2)),
    )
    assert response.status_code == 201


def test_create_in_the_past(client, customer, technician, login_as):
    login_as(customer)
    start = utcnow() - timedelta(days=1)

    response = client.post("/appointments/", json=_payload(technician, start, start + timedelta(hours=1)))

    assert response.status_code == 400
    assert response.json()["detail"] == "Start time must be in the future"


def test_create_with_end_before_start(client, customer, technician, login_as):
    login_as(customer)
    start = _future()

    response = client.post("/appointments/", json=_payload(technician, start, start - timedelta(hours=1)))

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInterval"


def test_create_with_unknown_technician(client, customer, login_as):
    login_as(customer)
    start = _future()

    response = client.post(
        "/appointments/",
        json={
            "technician_id": 999,
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(hours=1)).isoformat(),
            "service_type": "repair",
        },
    )
    assert response.status_code == 404


def test_create_with_busy_technician(client, customer, busy_technician, login_as):
    login_as(customer)
    start = _future()

    response = client.post("/appointments/", json=_payload(busy_technician, start, start + timedelta(hours=1)))

    assert response.status_code == 400
    assert response.json()["error"] == "TechnicianUnavailable"


def test_technician_cannot_create(client, technician, login_as):
    login_as(technician)
    start = _future()

    response = client.post("/appointments/", json=_payload(technician, start, start + timedelta(hours=1)))
    assert response.status_code == 403


def test_list_is_scoped_by_role(client, customer, technician, make_user, make_appointment, login_as):
    other_customer = make_user(UserRole.customer)
    other_tech = make_user(UserRole.technician)
    make_appointment(technician, _future(hour=9), _future(hour=10))
    make_appointment(other_tech, _future(hour=9), _future(hour=10), client_id=other_customer.id)

    login_as(customer)
    assert client.get("/appointments/").json()["data"]["pagination"]["total"] == 1

    login_as(other_tech)
    listed = client.get("/appointments/").json()["data"]["appointments"]
    assert [a["technician_id"] for a in listed] == [other_tech.id]


def test_list_filter_and_pagination(client, admin, technician, make_appointment, login_as):
    for hour in (9, 10, 11):
        make_appointment(technician, _future(hour=hour), _future(hour=hour, minute=30))
    make_appointment(technician, _future(hour=14), _future(hour=15), status=AppointmentStatus.canceled)
    login_as(admin)

    response = client.get("/appointments/", params={"status": "scheduled", "limit": 2, "sort": "asc"})

    data = response.json()["data"]
    assert data["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "pages": 2,
        "has_next": True,
        "has_prev": False,
    }
    starts = [a["start_time"] for a in data["appointments"]]
    assert starts == sorted(starts)


def test_get_appointment_access(client, customer, technician, make_user, make_appointment, login_as):
    appt = make_appointment(technician, _future(hour=9), _future(hour=10))

    login_as(technician)
    assert client.get(f"/appointments/{appt.id}").status_code == 200

    login_as(make_user(UserRole.customer))
    assert client.get(f"/appointments/{appt.id}").status_code == 403


def test_get_missing_appointment(client, customer, login_as):
    login_as(customer)
    response = client.get("/appointments/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_update_reschedule_conflict(client, customer, technician, make_appointment, login_as):
    make_appointment(technician, _future(hour=9), _future(hour=10))
    appt = make_appointment(technician, _future(hour=11), _future(hour=12))
    login_as(customer)

    response = client.put(
        f"/appointments/{appt.id}",
        json={"start_time": _future(hour=9, minute=30).isoformat(), "end_time": _future(hour=10, minute=30).isoformat()},
    )

    assert response.status_code == 409


def test_extending_a_started_appointment(client, customer, admin, technician, make_appointment, login_as):
    start = utcnow() - timedelta(hours=1)
    appt = make_appointment(technician, start, start + timedelta(hours=2))
    new_end = (start + timedelta(hours=3)).isoformat()

    login_as(customer)
    response = client.put(f"/appointments/{appt.id}", json={"end_time": new_end})
    assert response.status_code == 400
    assert response.json()["detail"] == "Start time must be in the future"

    login_as(admin)
    assert client.put(f"/appointments/{appt.id}", json={"end_time": new_end}).status_code == 200


def test_update_completed_is_forbidden(client, customer, technician, make_appointment, login_as):
    appt = make_appointment(technician, _future(hour=9), _future(hour=10), status=AppointmentStatus.completed)
    login_as(customer)

    response = client.put(f"/appointments/{appt.id}", json={"notes": "too late"})

    assert response.status_code == 403
    assert response.json()["error"] == "ImmutableState"


def test_update_status_flow(client, technician, make_appointment, login_as, sink):
    appt = make_appointment(technician, _future(hour=9), _future(hour=10, minute=15))
    login_as(technician)

    assert client.put(f"/appointments/{appt.id}", json={"status": "completed"}).status_code == 400
    client.put(f"/appointments/{appt.id}", json={"status": "in-progress"})
    response = client.put(f"/appointments/{appt.id}", json={"status": "completed"})

    data = response.json()["data"]["appointment"]
    assert data["status"] == "completed"
    assert data["actual_duration"] == 75
    assert sink.events[-1][0] == events.APPOINTMENT_UPDATED


def test_cancel_with_reason(client, customer, technician, make_appointment, login_as, sink):
    appt = make_appointment(technician, _future(days=3), _future(days=3, hour=11))
    login_as(customer)

    response = client.patch(f"/appointments/{appt.id}/cancel", json={"cancellation_reason": "moving"})

    assert response.status_code == 200
    data = response.json()["data"]["appointment"]
    assert data["status"] == "canceled"
    assert data["cancellation_reason"] == "moving"
    assert data["canceled_by"] == customer.id
    assert sink.events[-1][0] == events.APPOINTMENT_CANCELED


def test_cancel_without_body_uses_default_reason(client, customer, technician, make_appointment, login_as):
    appt = make_appointment(technician, _future(days=3), _future(days=3, hour=11))
    login_as(customer)

    response = client.patch(f"/appointments/{appt.id}/cancel")

    assert response.status_code == 200
    assert response.json()["data"]["appointment"]["cancellation_reason"] == "No reason provided"


def test_cancel_twice(client, customer, technician, make_appointment, login_as):
    appt = make_appointment(technician, _future(days=3), _future(days=3, hour=11))
    login_as(customer)
    client.patch(f"/appointments/{appt.id}/cancel")

    response = client.patch(f"/appointments/{appt.id}/cancel")

    assert response.status_code == 400
    assert response.json()["error"] == "AlreadyCanceled"


def test_cancel_inside_window(client, customer, admin, technician, make_appointment, login_as):
    start = utcnow() + timedelta(hours=2)
    appt = make_appointment(technician, start, start + timedelta(hours=1))

    login_as(customer)
    response = client.patch(f"/appointments/{appt.id}/cancel")
    assert response.status_code == 400
    assert response.json()["error"] == "CancellationWindowExpired"

    login_as(admin)
    assert client.patch(f"/appointments/{appt.id}/cancel").status_code == 200


def test_delete_cancels(client, customer, technician, make_appointment, login_as, session):
    appt = make_appointment(technician, _future(days=3), _future(days=3, hour=11))
    login_as(customer)

    response = client.delete(f"/appointments/{appt.id}")

    assert response.status_code == 200
    session.refresh(appt)
    assert appt.status == AppointmentStatus.canceled
    assert appt.cancellation_reason == "Canceled by user"


# =========================
# TÉCNICOS
# =========================
def test_list_technicians(client, customer, technician, busy_technician, login_as):
    login_as(customer)

    everyone = client.get("/technicians/").json()["data"]["technicians"]
    available = client.get("/technicians/", params={"availability": "available"}).json()["data"]["technicians"]

    assert {t["id"] for t in everyone} == {technician.id, busy_technician.id}
    assert [t["id"] for t in available] == [technician.id]


def test_technician_availability(client, customer, technician, make_appointment, login_as):
    make_appointment(technician, datetime(2030, 5, 6, 9, 0), datetime(2030, 5, 6, 11, 30))
    login_as(customer)

    response = client.get(f"/technicians/{technician.id}/availability", params={"date": "2030-05-06"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["date"] == "2030-05-06"
    assert data["booked_slots"] == ["09:00", "10:00", "11:00"]
    assert data["available_slots"] == ["12:00", "13:00", "14:00", "15:00", "16:00"]


def test_technician_availability_bad_date(client, customer, technician, login_as):
    login_as(customer)

    response = client.get(f"/technicians/{technician.id}/availability", params={"date": "06/05/2030"})

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidDate"


def test_technician_sets_own_availability(client, technician, customer, login_as, session):
    login_as(technician)

    response = client.patch("/technicians/availability", json={"availability": "offline"})

    assert response.status_code == 200
    session.refresh(technician)
    assert technician.availability == Availability.offline

    login_as(customer)
    assert client.patch("/technicians/availability", json={"availability": "busy"}).status_code == 403


# =========================
# CHAMADOS
# =========================
def test_support_request_flow(client, customer, technician, login_as, sink):
    login_as(customer)
    created = client.post(
        "/support-requests/",
        json={
            "title": "Wifi keeps dropping",
            "description": "The connection drops every few minutes since Monday.",
            "category": "technical-support",
        },
    )
    assert created.status_code == 201
    request_id = created.json()["request"]["id"]

    login_as(technician)
    assigned = client.post(f"/support-requests/{request_id}/assign", json={"technician_id": technician.id})
    assert assigned.json()["request"]["status"] == "in-progress"

    resolved = client.patch(f"/support-requests/{request_id}/status", json={"status": "resolved"})
    assert resolved.json()["request"]["resolved_at"] is not None

    login_as(customer)
    assert client.get(f"/support-requests/{request_id}").json()["status"] == "resolved"
    assert [e for e, _ in sink.events] == [
        events.SUPPORT_REQUEST_ASSIGNED,
        events.SUPPORT_REQUEST_STATUS_CHANGED,
    ]


def test_support_request_hidden_from_other_customers(client, customer, make_user, login_as):
    login_as(customer)
    created = client.post(
        "/support-requests/",
        json={"title": "Billing question", "description": "I was charged twice this month."},
    )

    login_as(make_user(UserRole.customer))
    response = client.get(f"/support-requests/{created.json()['request']['id']}")
    assert response.status_code == 403
