"""
Recompute service.
Keeps derived field values consistent with the values they depend on.
"""

import logging
from typing import Any, Dict, Iterable, Mapping

from formbuilder.core.dependency_graph import DependencyGraph
from formbuilder.core.derived_value_service import DerivedValueService
from formbuilder.models.field_value import FieldValue
from formbuilder.schemas.form_schema import FormSchema

logger = logging.getLogger(__name__)


class RecomputeService:
    """Schedules derived field recomputation in dependency order."""

    def __init__(self, derived_value_service: DerivedValueService = None):
        self.derived_value_service = derived_value_service or DerivedValueService()

    def initialize_values(self, schema: FormSchema) -> Dict[str, Any]:
        """
        Build the initial values map of a preview.

        Every field gets its default, then every derived field is evaluated
        once over the defaults in dependency order.

        Args:
            schema: Form definition

        Returns:
            Values keyed by field id
        """
        values: Dict[str, Any] = {
            field.id: FieldValue.default_for(field).raw for field in schema.fields
        }
        graph = DependencyGraph(schema.fields)
        self._recompute(schema, graph, graph.evaluation_order(), values)
        logger.debug(f"Initialized {len(values)} value(s) for form {schema.id}")
        return values

    def on_value_changed(
        self,
        field_id: str,
        new_value: Any,
        schema: FormSchema,
        values: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """
        Apply a value change and recompute everything derived from it.

        Args:
            field_id: Id of the changed field
            new_value: Its new value
            schema: Form definition
            values: Current values keyed by field id

        Returns:
            The full updated values map (a new dict)
        """
        updated = dict(values)
        updated[field_id] = new_value

        graph = DependencyGraph(schema.fields)
        affected = graph.transitive_dependents(field_id)
        if not affected:
            return updated

        order = [f for f in graph.evaluation_order() if f in affected]
        self._recompute(schema, graph, order, updated)
        logger.debug(f"Recomputed {len(order)} derived field(s) after change to {field_id}")
        return updated

    def _recompute(
        self,
        schema: FormSchema,
        graph: DependencyGraph,
        order: Iterable[str],
        values: Dict[str, Any]
    ) -> None:
        """Evaluate fields in order, writing each result before the next."""
        if graph.has_cycle():
            logger.warning(
                f"Form {schema.id} has cyclic derived fields, evaluating them once in list order: "
                f"{sorted(graph.cyclic_fields())}",
                extra={"form_id": schema.id}
            )
        for derived_id in order:
            field = schema.field_by_id(derived_id)
            if field is None:
                continue
            values[derived_id] = self.derived_value_service.evaluate(field, values, schema.fields)
