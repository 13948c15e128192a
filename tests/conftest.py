"""
Fixtures compartilhadas: banco SQLite em memória e app com dependências trocadas.
"""
import itertools
from datetime import datetime

import pytest
from fastapi import Depends, HTTPException
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from servicedesk.core.security import get_current_user
from servicedesk.database import get_session
from servicedesk.main import app
from servicedesk.models.appointment import Appointment, AppointmentStatus, ServiceType
from servicedesk.models.support_request import SupportRequest  # noqa: F401
from servicedesk.models.user import Availability, User, UserRole
from servicedesk.scheduling.events import RecordingNotificationSink, get_notification_sink

_counter = itertools.count(1)


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    def _make(role=UserRole.customer, **kwargs):
        n = next(_counter)
        user = User(
            username=kwargs.pop("username", f"user{n}"),
            email=kwargs.pop("email", f"user{n}@test.local"),
            role=role,
            password_hash=kwargs.pop("password_hash", "not-a-real-hash"),
            **kwargs,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def technician(make_user):
    return make_user(UserRole.technician, username="tech")


@pytest.fixture
def customer(make_user):
    return make_user(UserRole.customer, username="customer")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.admin, username="admin")


@pytest.fixture
def make_appointment(session, customer):
    """Insere direto no banco, sem passar pela checagem de conflito."""

    def _make(technician, start: datetime, end: datetime, status=AppointmentStatus.scheduled, **kwargs):
        appt = Appointment(
            client_id=kwargs.pop("client_id", customer.id),
            technician_id=technician.id,
            start_time=start,
            end_time=end,
            status=status,
            service_type=kwargs.pop("service_type", ServiceType.repair),
            **kwargs,
        )
        session.add(appt)
        session.commit()
        session.refresh(appt)
        return appt

    return _make


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def auth_state():
    return {"user_id": None}


@pytest.fixture
def login_as(auth_state):
    def _login(user: User):
        auth_state["user_id"] = user.id

    return _login


@pytest.fixture(name="client")
def client_fixture(session, auth_state, sink):
    def get_session_override():
        return session

    def get_current_user_override(db: Session = Depends(get_session)):
        if auth_state["user_id"] is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return db.get(User, auth_state["user_id"])

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = get_current_user_override
    app.dependency_overrides[get_notification_sink] = lambda: sink

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def busy_technician(make_user):
    return make_user(UserRole.technician, username="busy", availability=Availability.busy)
