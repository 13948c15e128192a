from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from servicedesk.core.logging import get_logger
from servicedesk.core.security import get_current_user, get_password_hash
from servicedesk.database import get_session
from servicedesk.models.user import User, UserCreate, UserRole

router = APIRouter(prefix="/users", tags=["users"])

logger = get_logger(__name__)


def _public(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "availability": user.availability,
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, session: Session = Depends(get_session)):

    # admins só pelo script de seed
    if user.role == UserRole.admin:
        raise HTTPException(status_code=403, detail="Cannot self-register as admin")

    existing_user = session.exec(
        select(User).where(User.email == user.email)
    ).first()

    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    db_user = User(
        username=user.username,
        email=user.email,
        phone=user.phone,
        password_hash=get_password_hash(user.password),
        role=user.role,
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)

    logger.info("user_registered", user_id=db_user.id, role=db_user.role.value)
    return _public(db_user)


@router.get("/me")
def read_me(current_user: User = Depends(get_current_user)):
    return _public(current_user)
