"""
Derived value service.
Computes the value of a derived field from its parents' current values.
"""

import logging
import math
from typing import Any, Dict, Mapping, Sequence

from formbuilder.core.exceptions import FormulaError
from formbuilder.core.formula_evaluator import FormulaEvaluator, is_truthy
from formbuilder.models.field_value import normalize_number, to_number, to_text
from formbuilder.schemas.form_schema import DerivedType, FormField

logger = logging.getLogger(__name__)


class DerivedValueService:
    """
    Evaluates derived fields.

    Evaluation is split in two steps shared by every mode: parent values are
    bound to variables named after the parent ids (coerced to numbers or to
    strings depending on the mode), then the formula is evaluated against
    those bindings. A broken formula never breaks the form: the field keeps
    its last value.
    """

    def __init__(self, evaluator: FormulaEvaluator = None):
        self.evaluator = evaluator or FormulaEvaluator()

    def evaluate(
        self,
        field: FormField,
        values: Mapping[str, Any],
        all_fields: Sequence[FormField]
    ) -> Any:
        """
        Compute a field's current value.

        Args:
            field: Field to evaluate
            values: Snapshot of current values keyed by field id
            all_fields: Every field of the form

        Returns:
            The computed value, or the stored value when the field is not
            derived or evaluation fails
        """
        stored = values.get(field.id)
        if not field.is_derived or field.parent_fields is None or not field.derived_formula:
            return stored

        mode = field.derived_type
        if mode not in (DerivedType.CALCULATION, DerivedType.CONCATENATION, DerivedType.CONDITIONAL):
            return stored

        try:
            variables = self.bind_parents(field, values, all_fields)
            result = self.evaluator.evaluate(field.derived_formula, variables)
        except FormulaError as e:
            logger.debug(f"Derived field {field.id} kept its last value: {str(e)}")
            return stored if stored is not None else ""

        if mode == DerivedType.CALCULATION:
            if isinstance(result, bool) or not isinstance(result, (int, float)) or math.isnan(result):
                return 0
            return normalize_number(result)

        # Concatenation and conditional results are returned as-is unless falsy
        return result if is_truthy(result) else ""

    @staticmethod
    def bind_parents(
        field: FormField,
        values: Mapping[str, Any],
        all_fields: Sequence[FormField]
    ) -> Dict[str, Any]:
        """
        Bind each parent id to its coerced current value.

        Missing values count as empty; parent ids that no longer resolve to
        a field are bound as empty too.
        """
        known_ids = {f.id for f in all_fields}
        as_text = field.derived_type == DerivedType.CONCATENATION

        variables: Dict[str, Any] = {}
        for parent_id in field.parent_ids():
            value = values.get(parent_id) if parent_id in known_ids else None
            variables[parent_id] = to_text(value) if as_text else to_number(value)
        return variables
