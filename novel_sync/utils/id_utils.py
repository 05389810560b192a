# =============================================================================
# File: novel_sync/utils/id_utils.py
# Description: Surrogate identifiers for projection records
# =============================================================================

from bson import ObjectId


def generate_surrogate_id() -> str:
    """Fresh surrogate id for a projection record whose payload carries none."""
    return str(ObjectId())
