"""
Per-instance validation error set.

Maps field name -> ordered list of messages. Each (re)validation of a field
replaces that field's list wholesale; messages are never appended across
validation runs. An empty set means the instance is valid.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping


class ErrorSet(Mapping[str, list[str]]):
    """Read-mostly mapping of field -> messages.

    Lookups of fields without errors return an empty list instead of
    raising, so ``errors["body"]`` is always safe.
    """

    def __init__(self) -> None:
        self._messages: dict[str, list[str]] = {}

    def __getitem__(self, field: str) -> list[str]:
        return list(self._messages.get(field, []))

    def __iter__(self) -> Iterator[str]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, field: object) -> bool:
        return field in self._messages

    def __repr__(self) -> str:
        return f"ErrorSet({self._messages!r})"

    def replace(self, field: str, messages: list[str]) -> None:
        """Set a field's messages, dropping the field when there are none."""
        if messages:
            self._messages[field] = list(messages)
        else:
            self._messages.pop(field, None)

    def clear(self, field: str | None = None) -> None:
        """Clear one field, or everything."""
        if field is None:
            self._messages.clear()
        else:
            self._messages.pop(field, None)

    @property
    def empty(self) -> bool:
        return not self._messages

    def full_messages(self) -> list[str]:
        """All messages, in field order."""
        return [m for messages in self._messages.values() for m in messages]

    def to_dict(self) -> dict[str, list[str]]:
        return {field: list(messages) for field, messages in self._messages.items()}
