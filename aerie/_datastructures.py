"""
Core data structures for request/response handling.

Provides:
- MultiDict: Multi-value dictionary for query string parameters
- Headers: Case-insensitive, multi-value header collection
- media_type: Content-Type parsing helper
"""

from __future__ import annotations

from typing import (
    Dict, Iterator, List, Mapping, MutableMapping,
    Optional, Tuple, Union
)


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(MutableMapping[str, List[str]]):
    """
    Dictionary that supports multiple values per key.

    Lambda events carry query parameters twice: single-valued in
    ``queryStringParameters`` and as lists in
    ``multiValueQueryStringParameters``. Both feed one MultiDict.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._data: Dict[str, List[str]] = {}

        if items:
            if isinstance(items, list):
                for key, value in items:
                    self.add(key, value)
            else:
                for key, value in items.items():
                    if isinstance(value, list):
                        self._data[key] = list(value)
                    elif value is not None:
                        self._data[key] = [value]

    def __getitem__(self, key: str) -> List[str]:
        return self._data[key]

    def __setitem__(self, key: str, value: Union[str, List[str]]) -> None:
        if isinstance(value, list):
            self._data[key] = value
        else:
            self._data[key] = [value]

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({dict(self._data)})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for a key."""
        values = self._data.get(key)
        return values[0] if values else default

    def get_all(self, key: str) -> List[str]:
        """Get all values for a key."""
        return self._data.get(key, [])

    def add(self, key: str, value: str) -> None:
        """Add a value to a key (appends to list)."""
        self._data.setdefault(key, []).append(value)

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to regular dict.

        Args:
            multi: If True, return lists for all keys.
                   If False, return the last value only, matching how
                   API Gateway flattens repeated parameters.
        """
        if multi:
            return {k: list(v) for k, v in self._data.items()}
        return {k: v[-1] for k, v in self._data.items() if v}


# ============================================================================
# Headers
# ============================================================================

class Headers:
    """
    Case-insensitive header access with original casing preserved.

    Used for both inbound request headers and outbound response headers,
    so it supports mutation (``set``, ``add``, ``remove``).
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._index: Dict[str, Tuple[str, List[str]]] = {}

        if items:
            pairs = items if isinstance(items, list) else list(items.items())
            for name, value in pairs:
                if value is None:
                    continue
                if isinstance(value, list):
                    for item in value:
                        self.add(name, item)
                else:
                    self.add(name, value)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for header (case-insensitive)."""
        entry = self._index.get(name.lower())
        if entry and entry[1]:
            return entry[1][0]
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for header (case-insensitive)."""
        entry = self._index.get(name.lower())
        return list(entry[1]) if entry else []

    def set(self, name: str, value: str) -> None:
        """Replace all values for header."""
        self._index[name.lower()] = (name, [str(value)])

    def add(self, name: str, value: str) -> None:
        """Append a value, keeping the casing of the first occurrence."""
        key = name.lower()
        if key in self._index:
            self._index[key][1].append(str(value))
        else:
            self._index[key] = (name, [str(value)])

    def remove(self, name: str) -> None:
        """Remove header if present."""
        self._index.pop(name.lower(), None)

    def has(self, name: str) -> bool:
        return name.lower() in self._index

    def items(self) -> Iterator[Tuple[str, str]]:
        """Iterate over (name, value) pairs, one per value."""
        for name, values in self._index.values():
            for value in values:
                yield name, value

    def keys(self) -> Iterator[str]:
        for name, _ in self._index.values():
            yield name

    def to_single(self) -> Dict[str, str]:
        """Flatten to one value per header (last wins)."""
        return {name: values[-1] for name, values in self._index.values() if values}

    def to_multi(self) -> Dict[str, List[str]]:
        return {name: list(values) for name, values in self._index.values()}

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Headers({self.to_multi()})"


def media_type(content_type: Optional[str]) -> str:
    """Return the bare, lower-cased media type of a Content-Type value."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()
