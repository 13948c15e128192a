from sqlmodel import Session, select

from servicedesk.core.security import get_password_hash
from servicedesk.database import create_db_and_tables, engine
from servicedesk.models.user import Availability, User, UserRole


DEFAULT_PASSWORD = "changeme123"

USERS = [
    dict(username="admin", email="admin@servicedesk.local", role=UserRole.admin),
    dict(username="tech.ana", email="ana@servicedesk.local", role=UserRole.technician),
    dict(username="tech.bruno", email="bruno@servicedesk.local", role=UserRole.technician),
    dict(username="cliente", email="cliente@servicedesk.local", role=UserRole.customer),
]


def main():
    create_db_and_tables()

    with Session(engine) as session:
        created = []
        for data in USERS:
            existing = session.exec(select(User).where(User.email == data["email"])).first()
            if existing:
                continue

            session.add(
                User(
                    username=data["username"],
                    email=data["email"],
                    role=data["role"],
                    availability=Availability.available,
                    password_hash=get_password_hash(DEFAULT_PASSWORD),
                )
            )
            created.append(data["email"])

        session.commit()

    print("✅ Seed concluído!")
    for email in created:
        print(f"Usuário criado: {email} (senha: {DEFAULT_PASSWORD})")
    if not created:
        print("Nenhum usuário novo (já existiam)")


if __name__ == "__main__":
    main()
