"""
AccountTree -- explicit parent/child index over a tenant's chart.

Responsibility:
    Builds a code-keyed tree from a flat list of accounts once per call and
    answers hierarchy questions (children, descendants, ancestors) and
    rollup sums without touching the database.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Works on anything with ``code`` and
    ``parent_code`` attributes (ORM rows or report DTOs).

Invariants enforced:
    - A parent's rolled-up balance equals its own posted balance plus the
      rolled-up balances of its children.
    - Accounts whose parent_code is unknown are treated as roots.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Generic, Iterable, Iterator, Mapping, Protocol, TypeVar


class _Node(Protocol):
    code: str
    parent_code: str | None


NodeT = TypeVar("NodeT", bound=_Node)


class AccountTree(Generic[NodeT]):
    """
    Contract:
        Built from an iterable of nodes; immutable afterwards.  Children are
        returned ordered by code.

    Raises:
        ValueError: If the parent links form a cycle.
    """

    def __init__(self, accounts: Iterable[NodeT]):
        self._by_code: dict[str, NodeT] = {a.code: a for a in accounts}
        children: dict[str | None, list[str]] = defaultdict(list)
        for code, account in self._by_code.items():
            parent = account.parent_code
            if parent is not None and parent not in self._by_code:
                parent = None
            children[parent].append(code)
        self._children = {k: sorted(v) for k, v in children.items()}
        self._check_acyclic()

    def _check_acyclic(self) -> None:
        for code in self._by_code:
            seen = {code}
            parent = self._parent_code(code)
            while parent is not None:
                if parent in seen:
                    raise ValueError(f"Account hierarchy cycle through {parent}")
                seen.add(parent)
                parent = self._parent_code(parent)

    def _parent_code(self, code: str) -> str | None:
        parent = self._by_code[code].parent_code
        return parent if parent in self._by_code else None

    def __contains__(self, code: str) -> bool:
        return code in self._by_code

    def __len__(self) -> int:
        return len(self._by_code)

    def __iter__(self) -> Iterator[NodeT]:
        return iter(self._by_code.values())

    def get(self, code: str) -> NodeT | None:
        return self._by_code.get(code)

    def roots(self) -> list[NodeT]:
        return [self._by_code[c] for c in self._children.get(None, [])]

    def children(self, code: str) -> list[NodeT]:
        return [self._by_code[c] for c in self._children.get(code, [])]

    def has_children(self, code: str) -> bool:
        return bool(self._children.get(code))

    def descendants(self, code: str) -> list[NodeT]:
        """All nodes below ``code``, depth-first, excluding ``code`` itself."""
        result: list[NodeT] = []
        for child_code in self._children.get(code, []):
            result.append(self._by_code[child_code])
            result.extend(self.descendants(child_code))
        return result

    def ancestors(self, code: str) -> list[NodeT]:
        """Parents of ``code`` from nearest to root."""
        result: list[NodeT] = []
        parent = self._parent_code(code)
        while parent is not None:
            result.append(self._by_code[parent])
            parent = self._parent_code(parent)
        return result

    def depth(self, code: str) -> int:
        return len(self.ancestors(code))

    def rollup(self, balances: Mapping[str, Decimal]) -> dict[str, Decimal]:
        """
        Roll own balances up the tree.

        Args:
            balances: Own (directly posted) balance per code.  Missing codes
                count as zero.

        Returns:
            Rolled-up balance for every code in the tree.
        """
        totals: dict[str, Decimal] = {}

        def _total(code: str) -> Decimal:
            if code not in totals:
                own = balances.get(code, Decimal("0"))
                totals[code] = own + sum(
                    (_total(c) for c in self._children.get(code, [])),
                    Decimal("0"),
                )
            return totals[code]

        for code in self._by_code:
            _total(code)
        return totals
