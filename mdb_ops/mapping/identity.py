"""
Identity extraction.

Reads an entity's identity from its encoded document, so identity-based
replace, upsert and delete work without knowing the entity's shape.
"""

from typing import Any

from ..constants import ID_KEY
from .codecs import Codec


def extract_identity(entity: Any, codec: Codec) -> Any | None:
    """
    Return the identity an entity is stored under.

    The entity is encoded with the same codec the write paths use, so the
    value returned here is the one the store compares against. The encoded
    document is discarded and the entity is never modified.

    Returns:
        The identity value, or None when the entity has none yet
    """
    return codec.encode(entity).get(ID_KEY)


def identity_filter(identity: Any) -> dict[str, Any]:
    """Build the filter matching one document by identity."""
    return {ID_KEY: identity}
