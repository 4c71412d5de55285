from __future__ import annotations

from typing import Any, Dict, Optional


class SQLQuery:
    """A compiled statement and the values bound to its keyword
    placeholders"""

    __slots__ = ("name", "text", "params")

    def __init__(
        self, name: str, text: str, params: Optional[Dict[str, Any]] = None
    ) -> None:
        self.name = name
        self.text = text
        self.params = params or {}

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} name={self.name} "
            f"text={self.text[:6]}... params={len(self.params)}>"
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name} "
            f"text={self.text[:6]}...)"
        )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, SQLQuery)
            and self.text == other.text
            and self.params == other.params
        )

    def __add__(self, other: object) -> SQLQuery:
        if not isinstance(other, SQLQuery):
            raise ValueError(
                "SQLQuery can only be added with another SQLQuery"
            )
        overlap = set(self.params) & set(other.params)
        if any(self.params[key] != other.params[key] for key in overlap):
            raise ValueError(
                "Cannot combine queries binding different values to: "
                f"{', '.join(sorted(overlap))}"
            )
        return SQLQuery(
            name=self.name,
            text=self.text + other.text,
            params={**self.params, **other.params},
        )
