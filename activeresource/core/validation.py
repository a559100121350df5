"""
Validation rules for model fields.

A rule is one check (presence, length, format, ...) bound to one field.
``evaluate`` runs a rule against a value and returns a ValidationResult; it
never touches the network or the identity map. Rules are declared per model
through a RuleSet, which parses the declaration syntax

    {"body": {"presence": True, "length": {"in": range(1, 140)}}}

into Rule objects and rejects malformed declarations up front.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ModelDeclarationError

# Built-in patterns usable as {"format": {"with": "<name>"}} or {"format": "<name>"}
NAMED_FORMATS: dict[str, re.Pattern[str]] = {
    "email": re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$"),
    "zip": re.compile(r"^\d{5}(?:-\d{4})?$"),
    "postal_code": re.compile(r"^[A-Za-z0-9][A-Za-z0-9\- ]{1,8}[A-Za-z0-9]$"),
    "alpha": re.compile(r"^[A-Za-z]+$"),
    "alphanumeric": re.compile(r"^[A-Za-z0-9]+$"),
    "integer": re.compile(r"^[-+]?\d+$"),
    "url": re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE),
    "phone": re.compile(r"^\+?[\d\s().-]{7,}$"),
}

RULE_KINDS: frozenset[str] = frozenset(
    {
        "presence",
        "absence",
        "length",
        "format",
        "numericality",
        "acceptance",
        "inclusion",
        "exclusion",
        "confirmation",
        "custom",
    }
)

# Option keys accepted in every dict-form rule
_COMMON_OPTIONS = frozenset({"message", "allow_blank"})


@dataclass
class ValidationResult:
    """Result of evaluating one rule."""

    passed: bool
    message: str | None = None

    @classmethod
    def success(cls) -> ValidationResult:
        """Create a passing result."""
        return cls(passed=True)

    @classmethod
    def failure(cls, message: str) -> ValidationResult:
        """Create a failing result."""
        return cls(passed=False, message=message)

    def __bool__(self) -> bool:
        """Allow using ValidationResult in boolean context."""
        return self.passed


@dataclass(frozen=True)
class Rule:
    """One validation rule bound to one field."""

    field: str
    kind: str
    params: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    allow_blank: bool = False


def humanize(name: str) -> str:
    """Turn a field name into a label: 'first_name' -> 'First name'."""
    label = name.replace("_", " ").strip()
    return label[:1].upper() + label[1:] if label else name


def is_blank(value: Any) -> bool:
    """True for None, whitespace-only strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def _read(instance: Any, name: str) -> Any:
    if isinstance(instance, Mapping):
        return instance.get(name)
    return getattr(instance, name, None)


def _length_of(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return len(str(value))
    try:
        return len(value)
    except TypeError:
        return len(str(value))


# -----------------------------------------------------------------------------
# Declaration parsing
# -----------------------------------------------------------------------------


def _declaration_error(field_name: str, kind: str, reason: str) -> ModelDeclarationError:
    return ModelDeclarationError(
        f"Invalid '{kind}' rule for field '{field_name}': {reason}",
        context={"field": field_name, "rule": kind},
    )


def _split_options(raw: Any) -> tuple[Any, dict[str, Any]]:
    """Separate common options from the rule's own parameters."""
    if isinstance(raw, Mapping):
        options = {k: raw[k] for k in _COMMON_OPTIONS if k in raw}
        params = {k: v for k, v in raw.items() if k not in _COMMON_OPTIONS}
        return params, options
    return raw, {}


def _parse_bounds(field_name: str, constraint: Any) -> dict[str, Any]:
    if isinstance(constraint, bool):
        raise _declaration_error(field_name, "length", "expected a length constraint")
    if isinstance(constraint, int):
        return {"is": constraint}
    if isinstance(constraint, range):
        return {"in": constraint}
    if isinstance(constraint, tuple) and len(constraint) == 2 and all(isinstance(b, int) for b in constraint):
        return {"minimum": constraint[0], "maximum": constraint[1]}
    if isinstance(constraint, Collection) and not isinstance(constraint, (str, Mapping)):
        return {"in": frozenset(constraint)}
    raise _declaration_error(field_name, "length", f"unsupported constraint {constraint!r}")


def _parse_length(field_name: str, params: Any) -> dict[str, Any]:
    if not isinstance(params, Mapping):
        return _parse_bounds(field_name, params)
    unknown = set(params) - {"in", "within", "min", "max", "minimum", "maximum", "is"}
    if unknown:
        raise _declaration_error(field_name, "length", f"unknown options {sorted(unknown)}")
    if "in" in params or "within" in params:
        return _parse_bounds(field_name, params.get("in", params.get("within")))
    if "is" in params:
        return {"is": int(params["is"])}
    minimum = params.get("minimum", params.get("min"))
    maximum = params.get("maximum", params.get("max"))
    if minimum is None and maximum is None:
        raise _declaration_error(field_name, "length", "needs 'in', 'is', 'min' or 'max'")
    return {"minimum": minimum, "maximum": maximum}


def _parse_pattern(field_name: str, spec: Any) -> dict[str, Any]:
    if isinstance(spec, Mapping):
        spec = spec.get("with")
    if isinstance(spec, re.Pattern):
        return {"pattern": spec, "name": None}
    if isinstance(spec, str):
        if spec in NAMED_FORMATS:
            return {"pattern": NAMED_FORMATS[spec], "name": spec}
        try:
            return {"pattern": re.compile(spec), "name": None}
        except re.error as e:
            raise _declaration_error(field_name, "format", f"bad pattern: {e}") from e
    raise _declaration_error(field_name, "format", "expected a pattern or a named format")


def _parse_members(field_name: str, kind: str, spec: Any) -> dict[str, Any]:
    if isinstance(spec, Mapping):
        spec = spec.get("in", spec.get("within"))
    if isinstance(spec, (str, bytes)) or not isinstance(spec, Collection):
        raise _declaration_error(field_name, kind, "expected a collection of values")
    return {"members": spec}


def _parse_numericality(field_name: str, spec: Any) -> dict[str, Any]:
    ignore = spec.get("ignore") if isinstance(spec, Mapping) else None
    if ignore is None:
        return {"ignore": None}
    try:
        pattern = ignore if isinstance(ignore, re.Pattern) else re.compile(ignore)
    except re.error as e:
        raise _declaration_error(field_name, "numericality", f"bad ignore pattern: {e}") from e
    return {"ignore": pattern}


def _parse_confirmation(field_name: str, spec: Any) -> dict[str, Any]:
    if isinstance(spec, Mapping):
        spec = spec.get("with", True)
    if spec is True:
        return {"companion": f"{field_name}_confirmation"}
    if isinstance(spec, str) and spec:
        return {"companion": spec}
    raise _declaration_error(field_name, "confirmation", "expected True or a field name")


def _parse_custom(field_name: str, spec: Any) -> dict[str, Any]:
    if isinstance(spec, Mapping):
        spec = spec.get("with")
    if not callable(spec):
        raise _declaration_error(field_name, "custom", "expected a callable")
    return {"check": spec}


def build_rule(field_name: str, kind: str, raw: Any) -> Rule | None:
    """
    Parse one declaration into a Rule.

    Returns None when the rule is switched off (``{"presence": False}``).

    Raises:
        ModelDeclarationError: For unknown kinds or malformed parameters
    """
    if kind not in RULE_KINDS:
        raise ModelDeclarationError(
            f"Unknown validation rule '{kind}' for field '{field_name}'",
            context={"field": field_name, "known": sorted(RULE_KINDS)},
        )
    if raw is False or raw is None:
        return None

    params, options = _split_options(raw)
    message = options.get("message")
    allow_blank = bool(options.get("allow_blank", False))

    if kind in ("presence", "absence", "acceptance"):
        parsed: dict[str, Any] = {}
    elif kind == "length":
        parsed = _parse_length(field_name, params)
    elif kind == "format":
        parsed = _parse_pattern(field_name, params)
    elif kind in ("inclusion", "exclusion"):
        parsed = _parse_members(field_name, kind, params)
    elif kind == "numericality":
        parsed = _parse_numericality(field_name, params)
    elif kind == "confirmation":
        parsed = _parse_confirmation(field_name, params)
    else:
        parsed = _parse_custom(field_name, params)

    return Rule(
        field=field_name,
        kind=kind,
        params=parsed,
        message=message,
        allow_blank=allow_blank,
    )


# -----------------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------------


def _check_length(rule: Rule, value: Any) -> str | None:
    label = humanize(rule.field)
    size = _length_of(value)
    params = rule.params
    if "is" in params:
        if size != params["is"]:
            return f"{label} is the wrong length (should be {params['is']} characters)"
        return None
    if "in" in params:
        allowed = params["in"]
        if size in allowed:
            return None
        if isinstance(allowed, range) and allowed.step == 1 and len(allowed):
            return (
                f"{label} must be between {allowed.start} and {allowed.stop - 1} characters"
            )
        return f"{label} has an invalid length"
    minimum, maximum = params.get("minimum"), params.get("maximum")
    if minimum is not None and size < minimum:
        if maximum is not None:
            return f"{label} must be between {minimum} and {maximum} characters"
        return f"{label} is too short (minimum is {minimum} characters)"
    if maximum is not None and size > maximum:
        if minimum is not None:
            return f"{label} must be between {minimum} and {maximum} characters"
        return f"{label} is too long (maximum is {maximum} characters)"
    return None


def _check_numericality(rule: Rule, value: Any) -> str | None:
    if isinstance(value, bool):
        return f"{humanize(rule.field)} is not a number"
    if isinstance(value, (int, float)):
        return None
    text = "" if value is None else str(value)
    ignore = rule.params.get("ignore")
    if ignore is not None:
        text = ignore.sub("", text)
    text = text.strip()
    try:
        float(text)
    except ValueError:
        return f"{humanize(rule.field)} is not a number"
    if text.lower() in ("nan", "inf", "-inf", "+inf", "infinity", "-infinity"):
        return f"{humanize(rule.field)} is not a number"
    return None


def _check(rule: Rule, value: Any, instance: Any) -> str | None:
    """Return the default failure message, or None when the rule passes."""
    label = humanize(rule.field)
    kind = rule.kind

    if kind == "presence":
        return f"{label} can't be blank" if is_blank(value) else None
    if kind == "absence":
        return None if is_blank(value) else f"{label} must be blank"
    if kind == "length":
        return _check_length(rule, value)
    if kind == "format":
        pattern: re.Pattern[str] = rule.params["pattern"]
        if value is not None and pattern.search(str(value)):
            return None
        name = rule.params.get("name")
        if name:
            return f"{label} must be a valid {humanize(name).lower()}"
        return f"{label} is invalid"
    if kind == "numericality":
        return _check_numericality(rule, value)
    if kind == "acceptance":
        return None if value else f"{label} must be accepted"
    if kind == "inclusion":
        return None if value in rule.params["members"] else f"{label} is not included in the list"
    if kind == "exclusion":
        return f"{label} is reserved" if value in rule.params["members"] else None
    if kind == "confirmation":
        companion = rule.params["companion"]
        if value == _read(instance, companion):
            return None
        return f"{label} doesn't match {humanize(companion)}"

    check: Callable[[Any, Any], bool] = rule.params["check"]
    return None if check(value, instance) else f"{label} is invalid"


def evaluate(rule: Rule, value: Any, instance: Any = None) -> ValidationResult:
    """
    Evaluate one rule against one field value.

    Args:
        rule: The rule to run
        value: Current value of ``rule.field``
        instance: Owning instance (or mapping), used by confirmation and custom rules

    Returns:
        ValidationResult carrying the custom or default message on failure
    """
    if rule.allow_blank and is_blank(value) and rule.kind not in ("presence", "absence"):
        return ValidationResult.success()
    failure = _check(rule, value, instance)
    if failure is None:
        return ValidationResult.success()
    return ValidationResult.failure(rule.message or failure)


class RuleSet:
    """Validation rules of one model, keyed by field, in declaration order."""

    def __init__(self) -> None:
        self._rules: dict[str, list[Rule]] = {}

    def add(self, declarations: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Register rules from ``{field: {rule: params, ...}, ...}``.

        All declarations are parsed before any is stored, so a bad
        declaration leaves the set unchanged.
        """
        parsed: list[Rule] = []
        for field_name, rules in declarations.items():
            if not isinstance(rules, Mapping):
                raise ModelDeclarationError(
                    f"Rules for field '{field_name}' must be a mapping of rule -> params",
                    context={"field": field_name},
                )
            for kind, raw in rules.items():
                rule = build_rule(field_name, kind, raw)
                if rule is not None:
                    parsed.append(rule)
        for rule in parsed:
            self._rules.setdefault(rule.field, []).append(rule)

    def for_field(self, field_name: str) -> list[Rule]:
        return list(self._rules.get(field_name, []))

    def fields(self) -> list[str]:
        return list(self._rules)

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._rules

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())
