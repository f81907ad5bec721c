"""Attribute validation of survey features against a declarative rule schema."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Callable, Mapping, Sequence

from . import custom_rules
from .models import (
    FieldError,
    LineFeature,
    PointFeature,
    Scalar,
    SurveyDataset,
    ValidationReport,
    ValidationRule,
    ValidationStats,
    is_blank,
)

Feature = PointFeature | LineFeature
Predicate = Callable[[Scalar, Feature], "str | None"]


@dataclass
class ValidationSchema:
    """Ordered point/line rules plus custom predicates keyed by field."""

    point_rules: list[ValidationRule]
    line_rules: list[ValidationRule]
    point_predicates: Mapping[str, Predicate] = field(default_factory=dict)
    line_predicates: Mapping[str, Predicate] = field(default_factory=dict)


def _read_rules(path: str | Path | None, default_name: str) -> list[ValidationRule]:
    if path is None:
        text = resources.files("survey_analysis").joinpath("schema", default_name).read_text(encoding="utf-8")
    else:
        text = Path(path).read_text(encoding="utf-8")
    return [ValidationRule.model_validate(rule) for rule in json.loads(text)]


def load_schema(
    points_path: str | Path | None = None,
    lines_path: str | Path | None = None,
) -> ValidationSchema:
    """Load rule lists from JSON files (defaults: the packaged schema)."""
    return ValidationSchema(
        point_rules=_read_rules(points_path, "points.json"),
        line_rules=_read_rules(lines_path, "lines.json"),
        point_predicates=custom_rules.POINT_RULES,
        line_predicates=custom_rules.LINE_RULES,
    )


def normalize_value(value: Scalar) -> str:
    """String form used for acceptable-value comparison (``11.0`` -> ``"11"``)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def validate_feature(
    feature: Feature,
    rules: Sequence[ValidationRule],
    predicates: Mapping[str, Predicate] | None = None,
) -> list[FieldError]:
    """Apply each rule in order and collect every violation on the feature."""
    errors: list[FieldError] = []

    for rule in rules:
        value = feature.attributes.get(rule.field_key)

        if is_blank(value):
            if rule.required == "always":
                errors.append(
                    FieldError(
                        feature_id=feature.id,
                        field=rule.field_key,
                        message=f"Field '{rule.field_key}' is required.",
                    )
                )
            continue

        if rule.acceptable_values:
            allowed = [normalize_value(av.value) for av in rule.acceptable_values]
            if normalize_value(value) not in allowed:
                errors.append(
                    FieldError(
                        feature_id=feature.id,
                        field=rule.field_key,
                        message=f"Value '{value}' is not valid. Allowed values: {', '.join(allowed)}",
                    )
                )

        predicate = (predicates or {}).get(rule.field_key)
        if predicate is not None:
            message = predicate(value, feature)
            if message is not None:
                errors.append(FieldError(feature_id=feature.id, field=rule.field_key, message=message))

    return errors


def validate_dataset(dataset: SurveyDataset, schema: ValidationSchema | None = None) -> ValidationReport:
    """Validate all points, then all lines."""
    schema = schema or load_schema()
    errors: list[FieldError] = []

    for point in dataset.points:
        errors.extend(validate_feature(point, schema.point_rules, schema.point_predicates))
    for line in dataset.lines:
        errors.extend(validate_feature(line, schema.line_rules, schema.line_predicates))

    return ValidationReport(
        valid=not errors,
        errors=errors,
        stats=ValidationStats(
            total_points=len(dataset.points),
            total_lines=len(dataset.lines),
            total_errors=len(errors),
        ),
    )
