"""
Immutable SQL accumulator threaded through clause rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable

from ..dialects.base import Dialect


@dataclass(frozen=True)
class SQLAccumulator:
    """
    ``(fragments, args, next_index)`` value. Every method returns a new
    accumulator, so a placeholder index can only advance together with the
    argument it stands for.
    """

    dialect: Dialect
    fragments: tuple[str, ...] = ()
    args: tuple[Any, ...] = ()
    next_index: int = 1

    def add(self, *fragments: str) -> "SQLAccumulator":
        kept = tuple(fragment for fragment in fragments if fragment)
        if not kept:
            return self
        return replace(self, fragments=self.fragments + kept)

    def bind(self, value: Any) -> tuple[str, "SQLAccumulator"]:
        token = self.dialect.placeholder(self.next_index)
        return token, replace(self, args=self.args + (value,), next_index=self.next_index + 1)

    def bind_many(self, values: Iterable[Any]) -> tuple[list[str], "SQLAccumulator"]:
        tokens: list[str] = []
        acc = self
        for value in values:
            token, acc = acc.bind(value)
            tokens.append(token)
        return tokens, acc

    def fresh(self) -> "SQLAccumulator":
        """
        Same argument state with no fragments, for rendering a sub-clause.
        """
        return replace(self, fragments=())

    def merge(self, other: "SQLAccumulator") -> "SQLAccumulator":
        """
        Take over the fragments and arguments of ``other``, which must have
        been derived from ``self.fresh()``.
        """
        if other.args[: len(self.args)] != self.args:
            raise RuntimeError("Cannot merge an accumulator with a diverged argument list.")
        return replace(
            self,
            fragments=self.fragments + other.fragments,
            args=other.args,
            next_index=other.next_index,
        )

    @property
    def sql(self) -> str:
        return " ".join(self.fragments)

    def build(self) -> tuple[str, list[Any]]:
        if len(self.args) != self.next_index - 1:
            raise RuntimeError(
                f"Placeholder bookkeeping drifted: {self.next_index - 1} placeholders, "
                f"{len(self.args)} arguments."
            )
        return self.sql, list(self.args)
