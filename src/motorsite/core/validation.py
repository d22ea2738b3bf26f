# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Declarative form validation.

Rules are immutable values; :func:`evaluate` applies a sequence of rules to an
input mapping and returns the per-field errors. :class:`Validator` is the fluent
builder used by route handlers, one instance per request::

    v = Validator().required(["login", "password"]).length("login", 3, 20)
    if not v.is_valid(form):
        errors = v.get_errors()

Every rule runs; a field collects all of its messages in declaration order.
Value rules (length, regex, email, min_length, equal) ignore a field that is
absent from the input, ``required`` is what reports it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from email_validator import EmailNotValidError, validate_email

REQUIRED = "required"
LENGTH = "length"
REGEX = "regex"
EMAIL = "email"
MIN_LENGTH = "min_length"
EQUAL = "equal"
CUSTOM = "custom"

MESSAGES = {
    REQUIRED: "field is required",
    LENGTH: "must be between {min} and {max} characters",
    REGEX: "has an invalid format",
    EMAIL: "invalid email address",
    MIN_LENGTH: "must be at least {min} characters",
    EQUAL: "values do not match",
}

Fields = Union[str, Iterable[str]]


@dataclass(frozen=True)
class Rule:
    field: str
    kind: str
    params: Tuple[Any, ...] = ()
    message: str = ""


@dataclass(frozen=True)
class ValidationResult:
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors


def _as_list(fields: Fields) -> List[str]:
    if isinstance(fields, str):
        return [fields]
    return list(fields)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _check(rule: Rule, data: Mapping[str, Any]) -> Optional[str]:
    """Return the error message for ``rule`` or None when it passes."""
    if rule.kind == REQUIRED:
        return rule.message if _is_empty(data.get(rule.field)) else None

    if rule.kind == CUSTOM:
        (predicate,) = rule.params
        return None if predicate(data) else rule.message

    if rule.field not in data:
        return None
    value = "" if data[rule.field] is None else str(data[rule.field])

    if rule.kind == LENGTH:
        lo, hi = rule.params
        if lo <= len(value) <= hi:
            return None
        return rule.message.format(min=lo, max=hi)

    if rule.kind == MIN_LENGTH:
        (lo,) = rule.params
        return None if len(value) >= lo else rule.message.format(min=lo)

    if rule.kind == REGEX:
        (pattern,) = rule.params
        return None if pattern.search(value) else rule.message

    if rule.kind == EMAIL:
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            return rule.message
        return None

    if rule.kind == EQUAL:
        (other,) = rule.params
        return None if data.get(other) == data.get(rule.field) else rule.message

    raise ValueError(f"Unknown rule kind: {rule.kind}")


def evaluate(rules: Iterable[Rule], data: Mapping[str, Any]) -> ValidationResult:
    errors: Dict[str, List[str]] = {}
    for rule in rules:
        message = _check(rule, data)
        if message is not None:
            errors.setdefault(rule.field, []).append(message)
    return ValidationResult(errors=errors)


class Validator:
    """Fluent rule builder with an error mapping for the current request."""

    def __init__(self) -> None:
        self._rules: List[Rule] = []
        self._extra: Dict[str, List[str]] = {}
        self._errors: Dict[str, List[str]] = {}

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return tuple(self._rules)

    def _rule(self, field_name: str, kind: str, params: Tuple[Any, ...], message: Optional[str]) -> None:
        self._rules.append(Rule(field_name, kind, params, message or MESSAGES.get(kind, "")))

    def required(self, fields: Fields, message: Optional[str] = None) -> "Validator":
        for name in _as_list(fields):
            self._rule(name, REQUIRED, (), message)
        return self

    def length(self, field_name: str, min_len: int, max_len: int, message: Optional[str] = None) -> "Validator":
        self._rule(field_name, LENGTH, (min_len, max_len), message)
        return self

    def regex(self, field_name: str, pattern: Union[str, "re.Pattern[str]"], message: Optional[str] = None, flags: int = 0) -> "Validator":
        compiled = re.compile(pattern, flags) if isinstance(pattern, str) else pattern
        self._rule(field_name, REGEX, (compiled,), message)
        return self

    def email(self, field_name: str, message: Optional[str] = None) -> "Validator":
        self._rule(field_name, EMAIL, (), message)
        return self

    def min_length(self, fields: Fields, min_len: int, message: Optional[str] = None) -> "Validator":
        for name in _as_list(fields):
            self._rule(name, MIN_LENGTH, (min_len,), message)
        return self

    def equal(self, field_a: str, field_b: str, message: Optional[str] = None) -> "Validator":
        # The error goes on the confirmation field.
        self._rule(field_b, EQUAL, (field_a,), message)
        return self

    def add(self, field_name: str, predicate: Callable[[Mapping[str, Any]], bool], message: str) -> "Validator":
        self._rule(field_name, CUSTOM, (predicate,), message)
        return self

    def add_error(self, field_name: str, message: str) -> "Validator":
        self._extra.setdefault(field_name, []).append(message)
        self._errors.setdefault(field_name, []).append(message)
        return self

    def is_valid(self, data: Mapping[str, Any]) -> bool:
        result = evaluate(self._rules, data)
        merged: Dict[str, List[str]] = {k: list(v) for k, v in result.errors.items()}
        for name, messages in self._extra.items():
            merged.setdefault(name, []).extend(messages)
        self._errors = merged
        return not merged

    def get_errors(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self._errors.items()}
