"""
Human-readable identifiers: a fixed prefix plus a zero-padded number.

The highest existing suffix for a prefix is scanned once per process and
used as the floor of an atomic store sequence, so concurrent writers never
receive the same number even if ids were created before the sequence
existed.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from backoffice.database.interfaces import KEY_FIELD, DocumentStore, Query
from backoffice.records.catalogue import CATEGORY, CATERING, FEATURES, POLICIES
from backoffice.records.claims import CLAIMS
from backoffice.records.contracts import CONTRACTS
from backoffice.records.payments import PAYMENTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentifierFormat:
    prefix: str
    width: int
    collection: str
    # Field holding the id; the document key when None.
    id_field: Optional[str] = None

    def format(self, number: int) -> str:
        return f"{self.prefix}{number:0{self.width}d}"

    def parse(self, value: str) -> Optional[int]:
        match = re.fullmatch(re.escape(self.prefix) + r"(\d+)", value or "")
        return int(match.group(1)) if match else None

    @property
    def sequence_name(self) -> str:
        return f"id:{self.collection}:{self.prefix}"


CLAIM_NUMBER = IdentifierFormat("CLM", 6, CLAIMS)
CONTRACT_NUMBER = IdentifierFormat("CNT", 6, CONTRACTS, id_field="contractNumber")
POLICY_ID = IdentifierFormat("POL", 3, POLICIES)
CATERING_ID = IdentifierFormat("CAT", 3, CATERING)
CATEGORY_ID = IdentifierFormat("CTG", 3, CATEGORY)
FEATURE_ID = IdentifierFormat("FEX", 3, FEATURES)
PAYMENT_REFERENCE = IdentifierFormat("ref-", 10, PAYMENTS)


class IdentifierGenerator:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._floors: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def _highest_existing(self, fmt: IdentifierFormat) -> int:
        field_name = fmt.id_field or KEY_FIELD
        snaps = await self.store.query(Query(fmt.collection).where(field_name, "prefix", fmt.prefix))
        highest = 0
        for snap in snaps:
            number = fmt.parse(str(snap.get(field_name) or ""))
            if number is not None and number > highest:
                highest = number
        return highest

    async def next_id(self, fmt: IdentifierFormat) -> str:
        if fmt.sequence_name not in self._floors:
            async with self._lock:
                if fmt.sequence_name not in self._floors:
                    self._floors[fmt.sequence_name] = await self._highest_existing(fmt)
                    logger.info(
                        "Seeded %s identifiers from existing maximum %d",
                        fmt.prefix,
                        self._floors[fmt.sequence_name],
                    )
        number = await self.store.next_sequence(fmt.sequence_name, self._floors[fmt.sequence_name])
        return fmt.format(number)
