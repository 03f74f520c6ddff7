"""Record-type dispatch and remote submission routines.

Each record type is sent to its own sync function in a single POST per
pass. The dispatcher groups queued entries by type and runs one routine per
non-empty group; a failing type is recorded and never stops the others.

Endpoint write semantics matter for retries. Upsert endpoints are keyed by
the record id and can be resent safely. Insert endpoints create a new remote
row on every delivery, so resending an already-delivered batch duplicates it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from leira_sync.core.errors import RemoteSubmissionError
from leira_sync.core.models import (
    HttpReply,
    OperatorIdentity,
    QueueEntry,
    RecordType,
    RemoteResponse,
    SyncOutcome,
)
from leira_sync.core.tracing import TimingContext

if TYPE_CHECKING:
    from leira_sync.ports.storage import RemoteClientProtocol

logger = logging.getLogger(__name__)


class WriteMode(str, Enum):
    """How the receiving endpoint writes a record."""

    INSERT = "insert"
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class EndpointSpec:
    """Wire contract of one record type's sync function."""

    record_type: RecordType
    function_name: str
    payload_key: str
    write_mode: WriteMode
    conflict_target: str | None = None
    table: str | None = None  # Target table name sent to the delete endpoint

    @property
    def is_idempotent(self) -> bool:
        """True when delivering the same batch twice leaves one remote record."""
        return self.write_mode in (WriteMode.UPSERT, WriteMode.DELETE)


DELETE_FUNCTION = "sync-delete"

ENDPOINTS: dict[RecordType, EndpointSpec] = {
    RecordType.MATERIAL: EndpointSpec(
        RecordType.MATERIAL, "sync-materiais", "materiais", WriteMode.INSERT
    ),
    RecordType.PILE: EndpointSpec(
        RecordType.PILE, "sync-leiras", "leiras", WriteMode.UPSERT, conflict_target="id"
    ),
    RecordType.MONITORING: EndpointSpec(
        RecordType.MONITORING,
        "sync-monitoramento",
        "monitoramentos",
        WriteMode.UPSERT,
        conflict_target="id",
    ),
    RecordType.WEATHER: EndpointSpec(RecordType.WEATHER, "sync-clima", "clima", WriteMode.INSERT),
    RecordType.ENRICHMENT: EndpointSpec(
        RecordType.ENRICHMENT, "sync-enriquecimento", "enriquecimentos", WriteMode.INSERT
    ),
    RecordType.PILE_DELETED: EndpointSpec(
        RecordType.PILE_DELETED,
        DELETE_FUNCTION,
        "itens",
        WriteMode.DELETE,
        conflict_target="id",
        table="leiras",
    ),
    RecordType.WEATHER_DELETED: EndpointSpec(
        RecordType.WEATHER_DELETED,
        DELETE_FUNCTION,
        "itens",
        WriteMode.DELETE,
        conflict_target="id",
        table="clima",
    ),
}

# Deletions follow the writes of the same kind of record
DISPATCH_ORDER: tuple[RecordType, ...] = (
    RecordType.MATERIAL,
    RecordType.PILE,
    RecordType.PILE_DELETED,
    RecordType.MONITORING,
    RecordType.WEATHER,
    RecordType.WEATHER_DELETED,
    RecordType.ENRICHMENT,
)


def normalize_weather(payload: Any) -> Any:
    """Fill the optional weather fields the endpoint expects to be present."""
    if not isinstance(payload, dict):
        return payload
    normalized = dict(payload)
    if normalized.get("umidade") is None:
        normalized["umidade"] = None
    if normalized.get("observacao") is None:
        normalized["observacao"] = ""
    return normalized


def _reply_error(reply: HttpReply) -> str:
    if isinstance(reply.body, dict):
        message = reply.body.get("erro") or reply.body.get("error")
        if message:
            return str(message)
    return reply.text[:200] or "empty response"


# =============================================================================
# Submission routines
# =============================================================================


class SubmissionRoutine:
    """Serializes one type's payloads and POSTs them to its endpoint.

    Success means a 2xx status and a JSON object body without a top-level
    error field. Anything else raises RemoteSubmissionError. Routines never
    touch the local queue.
    """

    def __init__(
        self,
        client: RemoteClientProtocol,
        spec: EndpointSpec,
        normalize: Callable[[Any], Any] | None = None,
    ) -> None:
        self._client = client
        self._spec = spec
        self._normalize = normalize

    @property
    def spec(self) -> EndpointSpec:
        return self._spec

    @property
    def record_type(self) -> RecordType:
        return self._spec.record_type

    def build_body(self, payloads: Sequence[Any], operator: OperatorIdentity) -> dict[str, Any]:
        items = [self._normalize(p) for p in payloads] if self._normalize else list(payloads)
        return {
            self._spec.payload_key: items,
            "operadorId": operator.id,
            "operadorNome": operator.name,
        }

    def submit(self, payloads: Sequence[Any], operator: OperatorIdentity) -> SyncOutcome:
        """Send one batch.

        Raises:
            RemoteSubmissionError: On network failure, non-2xx status,
                malformed body or a body reporting an error.
        """
        logger.info(
            "Sending %d %s record(s) to %s",
            len(payloads),
            self.record_type.value,
            self._spec.function_name,
        )
        reply = self._client.post_json(self._spec.function_name, self.build_body(payloads, operator))
        response = self._interpret(reply)

        for item in response.failed_items:
            logger.warning(
                "Endpoint %s reported item %s as failed: %s",
                self._spec.function_name,
                item.id,
                item.erro,
            )
        synced = response.deletados if response.deletados is not None else response.sincronizados
        logger.info("%d %s record(s) synchronized", synced, self.record_type.value)
        return SyncOutcome(
            record_type=self.record_type,
            succeeded=True,
            record_count=len(payloads),
            synced=synced,
        )

    def _interpret(self, reply: HttpReply) -> RemoteResponse:
        if not reply.ok:
            raise RemoteSubmissionError(
                self.record_type.value, _reply_error(reply), status_code=reply.status_code
            )
        if not isinstance(reply.body, dict):
            raise RemoteSubmissionError(
                self.record_type.value,
                "response body is not a JSON object",
                status_code=reply.status_code,
            )
        try:
            response = RemoteResponse.model_validate(reply.body)
        except PydanticValidationError as e:
            raise RemoteSubmissionError(
                self.record_type.value,
                f"malformed response body: {e.error_count()} validation error(s)",
                status_code=reply.status_code,
            ) from e
        if response.error_message or response.sucesso is False:
            raise RemoteSubmissionError(
                self.record_type.value,
                response.error_message or "endpoint reported sucesso=false",
                status_code=reply.status_code,
            )
        return response


class DeletionRoutine(SubmissionRoutine):
    """Sends deletions to the shared delete endpoint.

    The delete function is not deployed everywhere. A 2xx or 404 reply that
    is not JSON means there is nothing on the other side to delete from, so
    the batch counts as delivered instead of blocking the queue forever.
    """

    def build_body(self, payloads: Sequence[Any], operator: OperatorIdentity) -> dict[str, Any]:
        return {
            "tabela": self._spec.table,
            self._spec.payload_key: list(payloads),
            "operadorId": operator.id,
        }

    def _interpret(self, reply: HttpReply) -> RemoteResponse:
        if not reply.is_json and (reply.ok or reply.status_code == 404):
            logger.warning(
                "%s answered HTTP %d without JSON; treating %s deletions as delivered",
                self._spec.function_name,
                reply.status_code,
                self._spec.table,
            )
            return RemoteResponse(sucesso=True)
        return super()._interpret(reply)


def build_default_routines(client: RemoteClientProtocol) -> dict[RecordType, SubmissionRoutine]:
    """Create the routine for every known record type."""
    routines: dict[RecordType, SubmissionRoutine] = {}
    for record_type, spec in ENDPOINTS.items():
        if spec.write_mode == WriteMode.DELETE:
            routines[record_type] = DeletionRoutine(client, spec)
        elif record_type == RecordType.WEATHER:
            routines[record_type] = SubmissionRoutine(client, spec, normalize=normalize_weather)
        else:
            routines[record_type] = SubmissionRoutine(client, spec)
    return routines


# =============================================================================
# Dispatcher
# =============================================================================


class RecordTypeDispatcher:
    """Groups entries by record type and invokes one routine per type."""

    def __init__(
        self,
        routines: Mapping[RecordType, SubmissionRoutine],
        order: Sequence[RecordType] = DISPATCH_ORDER,
    ) -> None:
        self._routines = dict(routines)
        ordered = [rt for rt in order if rt in self._routines]
        self._order = ordered + [rt for rt in self._routines if rt not in ordered]

    @classmethod
    def with_default_routines(cls, client: RemoteClientProtocol) -> RecordTypeDispatcher:
        return cls(build_default_routines(client))

    @property
    def record_types(self) -> tuple[RecordType, ...]:
        return tuple(self._order)

    def partition(
        self, entries: Sequence[QueueEntry]
    ) -> tuple[dict[RecordType, list[QueueEntry]], list[QueueEntry]]:
        """Split entries into per-type groups (queue order kept) and unroutable ones.

        Returns:
            Tuple of (groups by record type, entries with no routine).
        """
        groups: dict[RecordType, list[QueueEntry]] = {}
        unroutable: list[QueueEntry] = []
        for entry in entries:
            record_type = entry.record_type
            if record_type is None or record_type not in self._routines:
                unroutable.append(entry)
                continue
            groups.setdefault(record_type, []).append(entry)
        return groups, unroutable

    def dispatch(
        self,
        groups: Mapping[RecordType, Sequence[QueueEntry]],
        operator: OperatorIdentity,
        cancel_event: threading.Event | None = None,
    ) -> list[SyncOutcome]:
        """Submit every non-empty group, isolating failures per type.

        Args:
            groups: Entries per record type, as returned by partition().
            operator: Operator the records are attributed to.
            cancel_event: Checked before each type; when set, the remaining
                types are not attempted.

        Returns:
            One SyncOutcome per attempted type, in dispatch order.
        """
        outcomes: list[SyncOutcome] = []
        timing = TimingContext()
        for record_type in self._order:
            entries = groups.get(record_type)
            if not entries:
                continue
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Dispatch cancelled before %s", record_type.value)
                break

            payloads = [e.payload for e in entries]
            try:
                with timing.measure(record_type.value):
                    outcomes.append(self._routines[record_type].submit(payloads, operator))
            except RemoteSubmissionError as e:
                logger.error("Failed to sync %s: %s", record_type.value, e)
                outcomes.append(
                    SyncOutcome(record_type, False, len(payloads), error=str(e))
                )
            except Exception as e:
                logger.error("Unexpected error syncing %s", record_type.value, exc_info=True)
                outcomes.append(
                    SyncOutcome(record_type, False, len(payloads), error=repr(e))
                )
        if timing.timings:
            logger.debug(
                "Dispatch timings (ms): %s",
                ", ".join(f"{name}={ms:.1f}" for name, ms in timing.timings.items()),
            )
        return outcomes
