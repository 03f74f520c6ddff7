"""Operator session persistence.

The logged-in operator is written by the login flow and read by every sync
pass, since synced records are attributed to them.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from leira_sync.core.errors import NoIdentityError
from leira_sync.core.models import OperatorIdentity
from leira_sync.core.queue_constants import CURRENT_OPERATOR_KEY

if TYPE_CHECKING:
    from leira_sync.ports.storage import KeyValueStoreProtocol

logger = logging.getLogger(__name__)


class OperatorSession:
    """Reads and writes the current-operator record."""

    def __init__(self, store: KeyValueStoreProtocol, key: str = CURRENT_OPERATOR_KEY) -> None:
        self._store = store
        self._key = key

    def current(self) -> OperatorIdentity | None:
        """Return the logged-in operator, or None if absent or unreadable."""
        raw = self._store.get(self._key)
        if not raw:
            return None
        try:
            return OperatorIdentity.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.error("Stored operator session is unreadable: %s", e)
            return None

    def require(self) -> OperatorIdentity:
        """Return the logged-in operator.

        Raises:
            NoIdentityError: If no operator session is persisted.
        """
        operator = self.current()
        if operator is None:
            raise NoIdentityError()
        return operator

    def login(self, operator: OperatorIdentity) -> None:
        self._store.set(self._key, operator.model_dump_json())
        logger.info("Operator %s logged in", operator.name)

    def logout(self) -> None:
        self._store.remove(self._key)
        logger.info("Operator session cleared")
