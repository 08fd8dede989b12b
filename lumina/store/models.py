"""Record data models — transactions, schedule items, journal entries, chat messages."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo
from enum import StrEnum
from typing import ClassVar

TRANSACTION_KINDS = ("income", "expense")
MOODS = ("happy", "sad", "energetic", "calm", "neutral")


class RecordKind(StrEnum):
    TRANSACTION = "transaction"
    SCHEDULE = "schedule"
    JOURNAL = "journal"
    CHAT = "chat"


def make_record_id() -> str:
    """Generate a new record ID."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(moment: datetime) -> str:
    """Serialize a datetime to the canonical stored form (UTC, microseconds).

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    """Parse a stored timestamp back into an aware UTC datetime."""
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def normalize_time(value: str) -> str:
    """Return *value* as a zero-padded 24h ``HH:MM`` string.

    Raises ``ValueError`` for anything that is not a valid clock time.
    """
    return datetime.strptime(value.strip(), "%H:%M").strftime("%H:%M")


@dataclass
class Transaction:
    """A single income or expense.

    Attributes:
        amount: Positive amount in the user's currency.
        kind: ``"income"`` or ``"expense"``.
        category: Free-text category (e.g. Food, Rent, UPI).
        description: Short description.
        occurred_at: When the money moved.
        id: Unique identifier (UUID hex).
    """

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "id", "amount", "kind", "category", "description", "occurred_at",
    )

    amount: float
    kind: str
    category: str
    description: str = ""
    occurred_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=make_record_id)

    def __post_init__(self) -> None:
        if self.amount <= 0:
            msg = f"Transaction amount must be positive, got {self.amount}"
            raise ValueError(msg)
        if self.kind not in TRANSACTION_KINDS:
            msg = f"Invalid transaction kind: {self.kind}"
            raise ValueError(msg)

    def to_row(self) -> tuple:
        return (
            self.id,
            float(self.amount),
            self.kind,
            self.category,
            self.description,
            to_iso(self.occurred_at),
        )

    @classmethod
    def from_row(cls, row: tuple) -> Transaction:
        return cls(
            id=row[0],
            amount=row[1],
            kind=row[2],
            category=row[3],
            description=row[4] or "",
            occurred_at=from_iso(row[5]),
        )


@dataclass
class ScheduleItem:
    """A meeting or appointment on a given date and clock time.

    ``reminder_minutes`` is advisory only; nothing in Lumina delivers it.
    """

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "id", "title", "description", "date", "time", "reminder_minutes",
    )

    title: str
    date: date
    time: str
    description: str = ""
    reminder_minutes: int | None = None
    id: str = field(default_factory=make_record_id)

    def __post_init__(self) -> None:
        if not self.title.strip():
            msg = "Schedule item title must not be empty"
            raise ValueError(msg)
        self.time = normalize_time(self.time)

    def starts_at(self, tz: tzinfo = UTC) -> datetime:
        """The instant this item starts, with date and time read in *tz*."""
        hour, minute = (int(part) for part in self.time.split(":"))
        return datetime(
            self.date.year, self.date.month, self.date.day, hour, minute, tzinfo=tz
        )

    def to_row(self) -> tuple:
        return (
            self.id,
            self.title,
            self.description,
            self.date.isoformat(),
            self.time,
            self.reminder_minutes,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ScheduleItem:
        return cls(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            date=date.fromisoformat(row[3]),
            time=row[4],
            reminder_minutes=row[5],
        )


@dataclass
class JournalEntry:
    """A diary entry tagged with the user's mood."""

    COLUMNS: ClassVar[tuple[str, ...]] = ("id", "content", "mood", "occurred_at")

    content: str
    mood: str
    occurred_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=make_record_id)

    def __post_init__(self) -> None:
        if not self.content.strip():
            msg = "Journal entry content must not be empty"
            raise ValueError(msg)
        if self.mood not in MOODS:
            msg = f"Invalid mood: {self.mood}"
            raise ValueError(msg)

    def to_row(self) -> tuple:
        return (self.id, self.content, self.mood, to_iso(self.occurred_at))

    @classmethod
    def from_row(cls, row: tuple) -> JournalEntry:
        return cls(
            id=row[0],
            content=row[1],
            mood=row[2],
            occurred_at=from_iso(row[3]),
        )


@dataclass
class ChatMessage:
    """One persisted conversation turn."""

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "id", "text", "is_from_user", "timestamp", "persona",
    )

    text: str
    is_from_user: bool
    timestamp: datetime = field(default_factory=utc_now)
    persona: str | None = None
    id: str = field(default_factory=make_record_id)

    @property
    def role(self) -> str:
        """Conversation role: ``"user"`` or ``"model"``."""
        return "user" if self.is_from_user else "model"

    def to_row(self) -> tuple:
        return (
            self.id,
            self.text,
            int(self.is_from_user),
            to_iso(self.timestamp),
            self.persona,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ChatMessage:
        return cls(
            id=row[0],
            text=row[1],
            is_from_user=bool(row[2]),
            timestamp=from_iso(row[3]),
            persona=row[4] or None,
        )


Record = Transaction | ScheduleItem | JournalEntry | ChatMessage

MODEL_FOR_KIND: dict[RecordKind, type] = {
    RecordKind.TRANSACTION: Transaction,
    RecordKind.SCHEDULE: ScheduleItem,
    RecordKind.JOURNAL: JournalEntry,
    RecordKind.CHAT: ChatMessage,
}


def kind_of(record: Record) -> RecordKind:
    """Return the RecordKind for a record instance."""
    for kind, model in MODEL_FOR_KIND.items():
        if isinstance(record, model):
            return kind
    msg = f"Not a record: {type(record).__name__}"
    raise TypeError(msg)
