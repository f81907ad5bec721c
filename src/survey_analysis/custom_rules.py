"""Custom validation logic that the declarative schema cannot express.

Each predicate takes ``(value, feature)`` and returns an error message or ``None``.
Predicates only run for fields that have a rule in the schema and a non-empty value.
"""


def _positive_number(label: str):
    def check(value, feature):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return f"{label} must be a number, got '{value}'"
        if number <= 0:
            return f"{label} must be greater than zero"
        return None

    return check


POINT_RULES = {
    "Bredde (diameter)": _positive_number("Diameter"),
    "Dybde": _positive_number("Depth"),
}

LINE_RULES = {
    "Dimensjon": _positive_number("Dimension"),
}
