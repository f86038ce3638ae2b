from __future__ import annotations

import secrets
import string
from collections.abc import Iterable

"""Row identity generation for the TG Delta and insulation tables.

Ids are short random base36 tokens. The generator remembers every id it has
issued or been seeded with, so an id is never handed out twice in a session,
even after the row that carried it was removed.
"""

__all__ = [
    "RowIdGenerator",
]

_ALPHABET = string.ascii_lowercase + string.digits
DEFAULT_TOKEN_LENGTH = 9


class RowIdGenerator:
    """Collision-checked random id source."""

    def __init__(self, seen: Iterable[str] = (), *, length: int = DEFAULT_TOKEN_LENGTH) -> None:
        if length < 4:
            raise ValueError("row id length must be at least 4")
        self._length = length
        self._issued: set[str] = set(seen)

    def reserve(self, ids: Iterable[str]) -> None:
        """Mark externally created ids as taken."""
        self._issued.update(ids)

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._issued

    def new_id(self) -> str:
        while True:
            token = "".join(secrets.choice(_ALPHABET) for _ in range(self._length))
            if token not in self._issued:
                self._issued.add(token)
                return token
