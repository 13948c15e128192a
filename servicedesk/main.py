from fastapi import FastAPI

from servicedesk.core.errors import register_exception_handlers
from servicedesk.core.logging import get_logger, request_context_middleware, setup_logging
from servicedesk.database import create_db_and_tables
from servicedesk.routers import appointments, auth, support_requests, technicians, users

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="servicedesk")
app.middleware("http")(request_context_middleware)
register_exception_handlers(app)

app.include_router(users.router)
app.include_router(auth.router)
app.include_router(appointments.router)
app.include_router(technicians.router)
app.include_router(support_requests.router)


@app.on_event("startup")
def on_startup():
    create_db_and_tables()
    logger.info("startup_complete")


@app.get("/")
def root():
    return {"message": "servicedesk API running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
