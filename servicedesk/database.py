from sqlmodel import Session, SQLModel, create_engine

from servicedesk.core.config import settings


connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # sessões do FastAPI rodam em threads diferentes
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    connect_args=connect_args,
    pool_pre_ping=True,
)


def create_db_and_tables():
    # garante que todos os models estão registrados no metadata
    from servicedesk.models import appointment, support_request, user  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
