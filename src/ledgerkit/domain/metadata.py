"""Bounded string metadata attached to accounts and journal entries."""

from collections.abc import Iterator, Mapping
import json
from typing import Any, Optional

from ledgerkit.domain.errors import ValidationError

MAX_PAIRS = 20
MAX_KEY_LEN = 64
MAX_VALUE_LEN = 256
MAX_TOTAL_JSON = 4096


class Metadata(Mapping[str, str]):
    """Immutable ``str -> str`` map with deterministic JSON encoding.

    Construction only checks that keys and values are strings; the size
    limits are enforced by :meth:`validate`, which the services call before
    anything is persisted. Keys are sorted before encoding, so two maps with
    the same pairs always produce the same JSON and therefore the same
    idempotency hash.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, str]] = None):
        items: dict[str, str] = {}
        for key, value in (data or {}).items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValidationError("metadata keys and values must be strings")
            items[key] = value
        self._data = dict(sorted(items.items()))

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Metadata):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_json())

    def __repr__(self) -> str:
        return f"Metadata({self._data!r})"

    def validate(self) -> None:
        """Check the pair, key, value and total size limits.

        Raises:
            ValidationError: If any limit is exceeded
        """
        if len(self._data) > MAX_PAIRS:
            raise ValidationError(f"metadata has more than {MAX_PAIRS} pairs")
        for key, value in self._data.items():
            if not key or len(key) > MAX_KEY_LEN:
                raise ValidationError(
                    f"metadata key must be 1-{MAX_KEY_LEN} characters: '{key[:MAX_KEY_LEN]}'"
                )
            if len(value) > MAX_VALUE_LEN:
                raise ValidationError(
                    f"metadata value for '{key}' exceeds {MAX_VALUE_LEN} characters"
                )
        if len(self.to_json().encode("utf-8")) > MAX_TOTAL_JSON:
            raise ValidationError(f"metadata exceeds {MAX_TOTAL_JSON} bytes when encoded")

    def to_dict(self) -> dict[str, str]:
        return dict(self._data)

    def to_json(self) -> str:
        """Return the canonical JSON encoding (sorted keys, no whitespace)."""
        return json.dumps(self._data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "Metadata":
        if not raw:
            return cls()
        data = json.loads(raw)
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("metadata must be a JSON object")
        return cls(data)


def coerce_metadata(value: Optional[Mapping[str, str]]) -> Metadata:
    """Return ``value`` as a Metadata instance."""
    if isinstance(value, Metadata):
        return value
    return Metadata(value)
