# =============================================================================
# File: novel_sync/common/base/base_model.py
# Description: Base Pydantic model for ledger entity payloads
# =============================================================================

from __future__ import annotations

from typing import Annotated, Any, Dict

from pydantic import BaseModel, BeforeValidator, ConfigDict

from novel_sync.utils.payload_fields import coerce_int, coerce_str

# Field types that never fail validation: skewed numerics and missing
# strings are normalised at this boundary so handlers only see clean values.
LedgerStr = Annotated[str, BeforeValidator(coerce_str)]
LedgerInt = Annotated[int, BeforeValidator(coerce_int)]


class LedgerPayload(BaseModel):
    """
    Base model for entity snapshots carried in ledger event payloads and
    returned by ledger read transactions.

    Field names are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra='ignore',
    )

    def to_ledger_dict(self) -> Dict[str, Any]:
        """Serialise using the ledger's camelCase field names."""
        return self.model_dump(by_alias=True)
