from datetime import datetime, timezone


def utcnow() -> datetime:
    """Agora em UTC, sem tzinfo (é assim que as datas vão para o banco)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    # datas sem tzinfo já são tratadas como UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
