"""Dependency graph for formula cells: dirty propagation and cycle detection."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from minisheet.calc._parser import all_references

if TYPE_CHECKING:
    from minisheet._worksheet import Sheet


class DependencyGraph:
    """Tracks formula cell dependencies within one sheet.

    All cell references are plain CellIds ("A1").
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[str, set[str]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # cell -> formula string
        self.formulas: dict[str, str] = {}

    def add_formula(self, cell_ref: str, formula: str, sheet: Sheet | None = None) -> None:
        """Register a formula cell and its dependencies."""
        if cell_ref in self.formulas:
            self.remove_formula(cell_ref)
        self.formulas[cell_ref] = formula
        refs = all_references(formula, sheet)

        self.dependencies[cell_ref] = set(refs)

        for ref in refs:
            if ref not in self.dependents:
                self.dependents[ref] = set()
            self.dependents[ref].add(cell_ref)

    def remove_formula(self, cell_ref: str) -> None:
        """Forget a formula cell and its outgoing edges."""
        self.formulas.pop(cell_ref, None)
        for ref in self.dependencies.pop(cell_ref, set()):
            readers = self.dependents.get(ref)
            if readers is not None:
                readers.discard(cell_ref)
                if not readers:
                    del self.dependents[ref]

    def affected_cells(self, changed_cells: set[str]) -> set[str]:
        """All formula cells transitively downstream of *changed_cells*.

        BFS on the dependents graph. The changed cells themselves are only
        included when a cycle leads back to them.
        """
        affected: set[str] = set()
        queue: deque[str] = deque(changed_cells)
        visited: set[str] = set()

        while queue:
            cell = queue.popleft()
            for dep in self.dependents.get(cell, set()):
                if dep not in visited:
                    visited.add(dep)
                    queue.append(dep)
                    if dep in self.formulas:
                        affected.add(dep)

        return affected

    def cyclic_cells(self) -> set[str]:
        """Formula cells that lie on a dependency cycle.

        Tarjan's strongly-connected-components algorithm, iterative so deep
        chains do not hit the recursion limit. A cell is cyclic when its
        component has more than one member or it reads itself.
        """
        index_of: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        cyclic: set[str] = set()
        counter = 0

        for root in sorted(self.formulas):
            if root in index_of:
                continue
            work: list[tuple[str, list[str]]] = []
            index_of[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work.append((root, self._formula_deps(root)))

            while work:
                node, pending = work[-1]
                if pending:
                    nxt = pending.pop()
                    if nxt not in index_of:
                        index_of[nxt] = lowlink[nxt] = counter
                        counter += 1
                        stack.append(nxt)
                        on_stack.add(nxt)
                        work.append((nxt, self._formula_deps(nxt)))
                    elif nxt in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[nxt])
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

                if lowlink[node] == index_of[node]:
                    component: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self.dependencies.get(node, set()):
                        cyclic.update(component)

        return cyclic

    def evaluation_order(self) -> list[str]:
        """Formula cells ordered so that each comes after the formulas it reads.

        Iterative post-order DFS. Cells on a cycle are still listed (once),
        in an arbitrary position relative to the other members of the cycle.
        """
        order: list[str] = []
        visited: set[str] = set()

        for root in sorted(self.formulas):
            if root in visited:
                continue
            visited.add(root)
            work: list[tuple[str, list[str]]] = [(root, self._formula_deps(root))]
            while work:
                node, pending = work[-1]
                if pending:
                    nxt = pending.pop()
                    if nxt not in visited:
                        visited.add(nxt)
                        work.append((nxt, self._formula_deps(nxt)))
                    continue
                work.pop()
                order.append(node)

        return order

    def _formula_deps(self, cell_ref: str) -> list[str]:
        # Only formula cells can close a cycle.
        return sorted(d for d in self.dependencies.get(cell_ref, set()) if d in self.formulas)

    @classmethod
    def from_sheet(cls, sheet: Sheet) -> DependencyGraph:
        """Build a dependency graph by scanning a sheet for formula cells."""
        graph = cls()
        for ref, cell in sheet.cells.items():
            if cell.is_formula:
                graph.add_formula(ref, cell.raw_input, sheet)
        return graph
