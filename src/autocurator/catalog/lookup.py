# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Insertion-ordered containers keyed by stable string ids"""

from collections.abc import Iterator
from typing import Generic, TypeVar

V = TypeVar("V")


class LookupVector(Generic[V]):
    """
    An insertion-ordered collection of values with unique string keys,
    supporting lookup both by key and by position. Entries are never removed.
    """

    def __init__(self):
        self._keys: list[str] = []
        self._values: list[V] = []
        self._index: dict[str, int] = {}

    def insert(self, key: str, value: V) -> V:
        """
        Append a value under a new key

        Raises
        ------
        KeyError
            If the key is already present
        """
        if key in self._index:
            raise KeyError(f"Duplicate key '{key}'")
        self._index[key] = len(self._values)
        self._keys.append(key)
        self._values.append(value)
        return value

    def index(self, key: str) -> int:
        return self._index[key]

    def at(self, index: int) -> V:
        return self._values[index]

    def key_at(self, index: int) -> str:
        return self._keys[index]

    def get(self, key: str, default: V | None = None) -> V | None:
        try:
            return self[key]
        except KeyError:
            return default

    def keys(self) -> list[str]:
        return list(self._keys)

    def values(self) -> list[V]:
        return list(self._values)

    def items(self) -> list[tuple[str, V]]:
        return list(zip(self._keys, self._values))

    def __getitem__(self, key: str) -> V:
        return self._values[self._index[key]]

    def __contains__(self, key) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LookupVector):
            return NotImplemented
        return self.items() == other.items()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.items()!r})"
