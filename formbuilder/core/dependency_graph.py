"""
Dependency graph among form fields.

Edges run from a parent field to each derived field that reads it. The graph
orders derived fields so every derived field is computed after the derived
fields it depends on, and detects cycles.
"""

from collections import deque
from typing import Dict, List, Optional, Sequence, Set

from formbuilder.schemas.form_schema import FormField


class DependencyGraph:
    """Directed dependency graph of a form's fields."""

    def __init__(self, fields: Sequence[FormField]):
        self.field_ids: List[str] = [f.id for f in fields]
        self._position = {field_id: index for index, field_id in enumerate(self.field_ids)}
        self.derived_ids: List[str] = [f.id for f in fields if f.is_derived]
        # parent id -> derived ids reading it, in field-list order
        self.dependents: Dict[str, List[str]] = {}
        # derived id -> parent ids that are themselves fields of the form
        self.parents: Dict[str, List[str]] = {}

        for field in fields:
            if not field.is_derived:
                continue
            resolved = []
            for parent_id in field.parent_ids():
                if parent_id in self._position and parent_id not in resolved:
                    resolved.append(parent_id)
                    self.dependents.setdefault(parent_id, []).append(field.id)
            self.parents[field.id] = resolved

        self._order: Optional[List[str]] = None
        self._cyclic: Set[str] = set()

    def direct_dependents(self, field_id: str) -> List[str]:
        """Derived fields that read `field_id` directly, in field-list order."""
        return list(self.dependents.get(field_id, []))

    def transitive_dependents(self, field_id: str) -> Set[str]:
        """Every derived field whose value can change when `field_id` changes."""
        seen: Set[str] = set()
        queue = deque(self.direct_dependents(field_id))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.direct_dependents(current))
        return seen

    def evaluation_order(self) -> List[str]:
        """
        Derived field ids in dependency order.

        Kahn's algorithm over derived fields, breaking ties by field-list
        order. Fields on or behind a cycle cannot be ordered; they follow the
        ordered ones in field-list order.
        """
        if self._order is None:
            self._compute_order()
        return list(self._order)

    def cyclic_fields(self) -> Set[str]:
        """Derived fields that could not be ordered because of a cycle."""
        if self._order is None:
            self._compute_order()
        return set(self._cyclic)

    def has_cycle(self) -> bool:
        return bool(self.cyclic_fields())

    def _compute_order(self) -> None:
        derived = set(self.derived_ids)
        pending = {
            field_id: sum(1 for parent in self.parents.get(field_id, []) if parent in derived)
            for field_id in self.derived_ids
        }
        ready = sorted((f for f, count in pending.items() if count == 0), key=self._position.get)
        order: List[str] = []

        while ready:
            current = ready.pop(0)
            order.append(current)
            for dependent in self.dependents.get(current, []):
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    ready.append(dependent)
                    ready.sort(key=self._position.get)

        self._cyclic = derived - set(order)
        order.extend(f for f in self.derived_ids if f in self._cyclic)
        self._order = order

    def find_cycle(self, start: str) -> Optional[List[str]]:
        """Return a dependency cycle through `start` as a list of ids, if any."""
        path: List[str] = []
        on_path: Set[str] = set()
        visited: Set[str] = set()

        def visit(node: str) -> Optional[List[str]]:
            path.append(node)
            on_path.add(node)
            for parent in self.parents.get(node, []):
                if parent == start:
                    return list(path)
                if parent not in on_path and parent not in visited:
                    found = visit(parent)
                    if found:
                        return found
            on_path.discard(node)
            visited.add(node)
            path.pop()
            return None

        if start in self.parents.get(start, []):
            return [start]
        found = visit(start)
        if found:
            # Report in dependency direction: parent before dependent
            found.reverse()
        return found
