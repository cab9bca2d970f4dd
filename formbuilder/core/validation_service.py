"""
Validation service.
Runs a field's validation rules against a candidate value and collects
human-readable violations.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from formbuilder.models.field_value import is_empty
from formbuilder.schemas.form_schema import FormField, FormSchema, ValidationRule, ValidationRuleType

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DIGIT_PATTERN = re.compile(r"\d")
PASSWORD_MIN_LENGTH = 8

REQUIRED_MESSAGE = "This field is required"
EMAIL_MESSAGE = "Please enter a valid email address"
PASSWORD_LENGTH_MESSAGE = f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
PASSWORD_DIGIT_MESSAGE = "Password must contain at least one number"
CUSTOM_MESSAGE = "Invalid value"


class ValidationService:
    """Service for field and form validation."""

    @staticmethod
    def validate_field(field: FormField, value: Any) -> List[str]:
        """
        Validate a value against a field's rules.

        Rules run in stored order and every failing rule contributes one
        message. Disabled rules are skipped. A field marked required without
        an enabled required rule still reports emptiness, ahead of its rules.

        Args:
            field: Field definition
            value: Candidate value

        Returns:
            Ordered list of violation messages, empty when valid
        """
        errors: List[str] = []
        rules = [rule for rule in field.validation_rules if rule.enabled]

        has_required_rule = any(rule.type == ValidationRuleType.REQUIRED for rule in rules)
        if field.is_effectively_required() and not has_required_rule and is_empty(value):
            errors.append(REQUIRED_MESSAGE)

        for rule in rules:
            message = ValidationService._check_rule(rule, value)
            if message:
                errors.append(message)

        return errors

    @staticmethod
    def validate_form(schema: FormSchema, values: Mapping[str, Any]) -> Dict[str, List[str]]:
        """
        Validate every non-derived field of a form.

        Args:
            schema: Form definition
            values: Current values keyed by field id

        Returns:
            Violations keyed by field id; fields without violations are omitted
        """
        errors: Dict[str, List[str]] = {}
        for field in schema.fields:
            if field.is_derived:
                continue
            field_errors = ValidationService.validate_field(field, values.get(field.id))
            if field_errors:
                errors[field.id] = field_errors

        logger.debug(f"Validated form {schema.id}: {len(errors)} field(s) with errors")
        return errors

    @staticmethod
    def _check_rule(rule: ValidationRule, value: Any) -> Optional[str]:
        """Return the violation message for one rule, or None."""
        if rule.type == ValidationRuleType.REQUIRED:
            if is_empty(value):
                return rule.message or REQUIRED_MESSAGE
            return None

        # Every other rule only looks at non-empty strings
        if not isinstance(value, str) or value == "":
            return None

        if rule.type == ValidationRuleType.MIN_LENGTH:
            bound = ValidationService._length_bound(rule)
            if bound is not None and len(value) < bound:
                return rule.message or f"Minimum length is {bound} characters"

        elif rule.type == ValidationRuleType.MAX_LENGTH:
            bound = ValidationService._length_bound(rule)
            if bound is not None and len(value) > bound:
                return rule.message or f"Maximum length is {bound} characters"

        elif rule.type == ValidationRuleType.EMAIL:
            if not EMAIL_PATTERN.match(value):
                return rule.message or EMAIL_MESSAGE

        elif rule.type == ValidationRuleType.PASSWORD:
            # A short password reports only its length
            if len(value) < PASSWORD_MIN_LENGTH:
                return rule.message or PASSWORD_LENGTH_MESSAGE
            if not DIGIT_PATTERN.search(value):
                return rule.message or PASSWORD_DIGIT_MESSAGE

        elif rule.type == ValidationRuleType.CUSTOM:
            pattern = ValidationService._custom_pattern(rule)
            if pattern is not None and not pattern.fullmatch(value):
                return rule.message or CUSTOM_MESSAGE

        return None

    @staticmethod
    def _length_bound(rule: ValidationRule) -> Optional[int]:
        """Numeric threshold of a length rule; thresholds may be stored as strings."""
        if rule.value is None or isinstance(rule.value, bool):
            logger.warning(f"{rule.type.value} rule has no threshold, skipping")
            return None
        try:
            return int(float(rule.value))
        except (TypeError, ValueError):
            logger.warning(f"{rule.type.value} rule has invalid threshold {rule.value!r}, skipping")
            return None

    @staticmethod
    def _custom_pattern(rule: ValidationRule) -> Optional["re.Pattern[str]"]:
        if not isinstance(rule.value, str) or not rule.value:
            return None
        try:
            return re.compile(rule.value)
        except re.error as e:
            logger.warning(f"Custom rule pattern {rule.value!r} is invalid, skipping: {str(e)}")
            return None
