"""Pure tests for AccountTree (no database)."""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from ledger_kernel.domain.account_tree import AccountTree


@dataclass
class Node:
    code: str
    parent_code: str | None = None


def _tree() -> AccountTree[Node]:
    return AccountTree(
        [
            Node("6000"),
            Node("6010", "6000"),
            Node("6011", "6010"),
            Node("6012", "6010"),
            Node("6100", "6000"),
            Node("7000"),
        ]
    )


class TestAccountTree:

    def test_roots_and_children_sorted(self):
        tree = _tree()
        assert [n.code for n in tree.roots()] == ["6000", "7000"]
        assert [n.code for n in tree.children("6000")] == ["6010", "6100"]

    def test_descendants_depth_first(self):
        assert [n.code for n in _tree().descendants("6000")] == [
            "6010",
            "6011",
            "6012",
            "6100",
        ]

    def test_ancestors_and_depth(self):
        tree = _tree()
        assert [n.code for n in tree.ancestors("6011")] == ["6010", "6000"]
        assert tree.depth("6011") == 2
        assert tree.depth("7000") == 0

    def test_unknown_parent_treated_as_root(self):
        tree = AccountTree([Node("1001", "1000")])
        assert [n.code for n in tree.roots()] == ["1001"]

    def test_cycle_rejected(self):
        with pytest.raises(ValueError):
            AccountTree([Node("A", "B"), Node("B", "A")])

    def test_rollup_sums_own_and_children(self):
        rolled = _tree().rollup(
            {"6011": Decimal("10"), "6012": Decimal("5"), "6010": Decimal("1"), "6100": Decimal("2")}
        )
        assert rolled["6010"] == Decimal("16")
        assert rolled["6000"] == Decimal("18")
        assert rolled["7000"] == Decimal("0")
