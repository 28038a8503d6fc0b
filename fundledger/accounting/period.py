"""Calendar-month accounting periods."""

from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, datetime, timezone

from fundledger.errors import ValidationError
from fundledger.money import as_utc


@dataclass(frozen=True, order=True)
class Period:
    """One calendar month, [start, end) in UTC."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValidationError(
                f"month must be 1..12, got {self.month}", field="month"
            )
        if not MINYEAR <= self.year <= MAXYEAR:
            raise ValidationError(
                f"year out of range: {self.year}", field="year"
            )

    @classmethod
    def containing(cls, when: datetime) -> "Period":
        when = as_utc(when)
        return cls(when.year, when.month)

    @classmethod
    def previous_to(cls, when: datetime) -> "Period":
        """The last fully closed month before ``when``."""
        return cls.containing(when).previous()

    @classmethod
    def parse(cls, text: str) -> "Period":
        """Parse ``YYYY-MM``."""
        parts = text.strip().split("-")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValidationError(
                f"period must look like YYYY-MM, got {text!r}", field="period"
            )
        year, month = int(parts[0]), int(parts[1])
        if not 2000 <= year <= 2100:
            raise ValidationError(
                f"period year out of range: {text!r}", field="period"
            )
        return cls(year, month)

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)

    @property
    def end(self) -> datetime:
        return self.next().start

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def label(self) -> str:
        """Human label, e.g. ``March 2026``."""
        return self.start.strftime("%B %Y")

    def previous(self) -> "Period":
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def next(self) -> "Period":
        if self.month == 12:
            return Period(self.year + 1, 1)
        return Period(self.year, self.month + 1)

    def months_after(self, other: "Period") -> int:
        """Number of calendar months from ``other`` to this period."""
        return (self.year - other.year) * 12 + (self.month - other.month)

    def contains(self, when: datetime) -> bool:
        return self.start <= as_utc(when) < self.end

    def __str__(self) -> str:
        return self.key
