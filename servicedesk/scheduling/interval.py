from dataclasses import dataclass
from datetime import datetime

from servicedesk.core.errors import InvalidInterval
from servicedesk.core.timeutils import to_utc_naive


@dataclass(frozen=True)
class Interval:
    """Intervalo semiaberto [start, end) em UTC."""

    start: datetime
    end: datetime

    def __post_init__(self):
        # frozen: normaliza via object.__setattr__
        object.__setattr__(self, "start", to_utc_naive(self.start))
        object.__setattr__(self, "end", to_utc_naive(self.end))
        if self.end <= self.start:
            raise InvalidInterval()

    def overlaps(self, other: "Interval") -> bool:
        """Retorna True se [start, end) sobrepõe o outro intervalo.

        Pontas encostadas (10:00 termina, 10:00 começa) não contam como conflito.
        """
        return self.start < other.end and other.start < self.end

    @property
    def duration_minutes(self) -> int:
        return round((self.end - self.start).total_seconds() / 60)
