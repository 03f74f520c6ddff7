"""Data models for leira-sync."""

from __future__ import annotations

import copy
import hashlib
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from leira_sync.core.utils import epoch_millis


class RecordType(str, Enum):
    """Kind of domain record carried by a queue entry."""

    MATERIAL = "material"  # Material intake (MTR manifests, bagasse)
    PILE = "pile"  # Leira creation / edits
    MONITORING = "monitoring"  # Temperature readings and turnings
    WEATHER = "weather"  # Rain / humidity records
    ENRICHMENT = "enrichment"  # Material added to an existing pile
    PILE_DELETED = "pile_deleted"
    WEATHER_DELETED = "weather_deleted"

    @classmethod
    def parse(cls, value: str) -> RecordType | None:
        """Return the matching RecordType, or None for unrecognized values."""
        try:
            return cls(value)
        except ValueError:
            return None


class QueueEntry(BaseModel):
    """One pending change, as persisted in a sync queue.

    Entries are frozen: the payload is deep-copied at enqueue time and later
    edits to the same logical record produce a new entry rather than a merge.
    ``type`` is kept as a plain string so entries written with a type this
    version does not know still round-trip through the queue untouched.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    payload: Any = None
    enqueued_at: int = Field(..., alias="enqueuedAt", ge=0)
    attempt_count: int = Field(default=0, alias="attemptCount", ge=0)

    @model_validator(mode="before")
    @classmethod
    def _fill_missing_id(cls, data: Any) -> Any:
        """Derive an id for entries persisted without one.

        The id is a digest of type, enqueuedAt and payload so the same stored
        entry gets the same id on every load and can be removed by id.
        """
        if not isinstance(data, dict) or data.get("id"):
            return data
        type_value = data.get("type")
        enqueued_at = data.get("enqueuedAt", data.get("enqueued_at"))
        if not type_value or enqueued_at is None:
            return data
        digest = hashlib.sha1(
            json.dumps(data.get("payload"), sort_keys=True, default=str).encode("utf-8")
        ).hexdigest()[:8]
        return {**data, "id": f"{type_value}_{enqueued_at}_{digest}"}

    @classmethod
    def create(
        cls,
        record_type: RecordType | str,
        payload: Any,
        enqueued_at: int | None = None,
    ) -> QueueEntry:
        """Snapshot a payload into a new entry.

        Args:
            record_type: Type of the record.
            payload: Domain record; deep-copied so later caller mutations
                do not leak into the queue.
            enqueued_at: Epoch milliseconds. Defaults to now.

        Returns:
            A new QueueEntry with attempt_count 0.
        """
        type_value = record_type.value if isinstance(record_type, RecordType) else str(record_type)
        timestamp = epoch_millis() if enqueued_at is None else enqueued_at
        return cls(
            id=f"{type_value}_{timestamp}_{uuid.uuid4().hex[:8]}",
            type=type_value,
            payload=copy.deepcopy(payload),
            enqueued_at=timestamp,
        )

    @property
    def record_type(self) -> RecordType | None:
        return RecordType.parse(self.type)

    def with_failed_attempt(self) -> QueueEntry:
        """Return a copy with attempt_count incremented."""
        return self.model_copy(update={"attempt_count": self.attempt_count + 1})

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used on disk and on the wire."""
        return self.model_dump(mode="json", by_alias=True)


class OperatorIdentity(BaseModel):
    """The logged-in operator that synced writes are attributed to."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., validation_alias=AliasChoices("name", "nome"))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ItemDetail(BaseModel):
    """Per-record status reported by a sync endpoint."""

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    status: str = ""  # "inserido", "sincronizado" or "erro"
    erro: str | None = None


class RemoteResponse(BaseModel):
    """Parsed body of a sync endpoint response."""

    model_config = ConfigDict(extra="allow")

    sucesso: bool | None = None
    sincronizados: int = 0
    erros: int = 0
    detalhes: list[ItemDetail] | str = Field(default_factory=list)
    erro: str | None = None
    error: str | None = None
    deletados: int | None = None

    @property
    def error_message(self) -> str | None:
        """Top-level error field, whichever spelling the endpoint used."""
        return self.erro or self.error

    @property
    def failed_items(self) -> list[ItemDetail]:
        if isinstance(self.detalhes, str):
            return []
        return [d for d in self.detalhes if d.status == "erro"]


# =============================================================================
# Result types
# =============================================================================


class PassState(str, Enum):
    """Terminal state of one synchronization pass."""

    SYNCHRONIZED = "synchronized"  # Every type succeeded, entries removed
    DEFERRED = "deferred"  # At least one type failed, retried next trigger
    OFFLINE = "offline"
    NO_IDENTITY = "no_identity"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"  # Another pass was already in flight


@dataclass
class SyncOutcome:
    """Result of submitting one record type's batch."""

    record_type: RecordType
    succeeded: bool
    record_count: int
    synced: int = 0
    error: str | None = None


@dataclass
class PassResult:
    """Result of one synchronization pass."""

    state: PassState
    outcomes: list[SyncOutcome] = field(default_factory=list)
    removed: int = 0
    pass_id: str = ""

    @property
    def successes(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def synchronized(self) -> bool:
        return self.state == PassState.SYNCHRONIZED


@dataclass
class DrainResult:
    """Result of one bounded-queue drain."""

    succeeded: int = 0
    failed: int = 0
    dropped: int = 0


@dataclass
class QueueStatus:
    """Snapshot summary of a queue."""

    total: int
    pending: int  # Never attempted
    with_errors: int  # At least one failed attempt
    last_entry: QueueEntry | None = None


@dataclass
class HttpReply:
    """Raw outcome of one POST to a sync endpoint."""

    status_code: int
    body: Any = None  # Parsed JSON, or None when the body was not JSON
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_json(self) -> bool:
        return self.body is not None
