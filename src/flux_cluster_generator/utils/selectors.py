"""Kubernetes label selector parsing and matching.

Supports the string form accepted by ``kubectl -l``::

    env=dev,tier!=frontend,team in (a, b),!legacy,region,release notin (x)

An empty selector matches everything.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

_NAME_RE = re.compile(r"^([A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?)$")
_DNS_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
_KEY_CHARS = r"[A-Za-z0-9][-A-Za-z0-9_./]*"

_NOT_EXISTS_RE = re.compile(rf"^!\s*({_KEY_CHARS})$")
_SET_RE = re.compile(rf"^({_KEY_CHARS})\s+(in|notin)\s*\((.*)\)$")
_BINARY_RE = re.compile(rf"^({_KEY_CHARS})\s*(==|=|!=|>|<)\s*(.*)$")
_EXISTS_RE = re.compile(rf"^({_KEY_CHARS})$")

OP_EQUALS = "="
OP_NOT_EQUALS = "!="
OP_IN = "in"
OP_NOT_IN = "notin"
OP_EXISTS = "exists"
OP_DOES_NOT_EXIST = "!"
OP_GREATER_THAN = "gt"
OP_LESS_THAN = "lt"


class SelectorParseError(ValueError):
    """Raised when a label selector string cannot be parsed."""


def validate_label_key(key: str) -> None:
    """Validate a qualified label key (``[prefix/]name``)."""
    prefix, sep, name = key.rpartition("/")
    if sep:
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN_RE.match(prefix):
            raise SelectorParseError(f"invalid label key prefix {prefix!r} in {key!r}")
    if not name or len(name) > 63 or not _NAME_RE.match(name):
        raise SelectorParseError(f"invalid label key {key!r}")


def validate_label_value(value: str) -> None:
    """Validate a label value; the empty string is allowed."""
    if value == "":
        return
    if len(value) > 63 or not _NAME_RE.match(value):
        raise SelectorParseError(f"invalid label value {value!r}")


@dataclass(frozen=True)
class Requirement:
    """A single ``key <op> values`` clause of a selector."""

    key: str
    operator: str
    values: tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        value = labels.get(self.key)
        if self.operator in (OP_EQUALS, OP_IN):
            return present and value in self.values
        if self.operator in (OP_NOT_EQUALS, OP_NOT_IN):
            return not present or value not in self.values
        if self.operator == OP_EXISTS:
            return present
        if self.operator == OP_DOES_NOT_EXIST:
            return not present
        if self.operator in (OP_GREATER_THAN, OP_LESS_THAN):
            if not present:
                return False
            try:
                actual = int(value)  # type: ignore[arg-type]
            except ValueError:
                return False
            bound = int(self.values[0])
            return actual > bound if self.operator == OP_GREATER_THAN else actual < bound
        return False

    def __str__(self) -> str:
        if self.operator == OP_EXISTS:
            return self.key
        if self.operator == OP_DOES_NOT_EXIST:
            return f"!{self.key}"
        if self.operator in (OP_IN, OP_NOT_IN):
            return f"{self.key} {self.operator} ({','.join(self.values)})"
        symbol = {OP_GREATER_THAN: ">", OP_LESS_THAN: "<"}.get(self.operator, self.operator)
        return f"{self.key}{symbol}{self.values[0]}"


@dataclass(frozen=True)
class LabelSelector:
    """A conjunction of requirements; empty means match everything."""

    requirements: tuple[Requirement, ...] = field(default_factory=tuple)

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        labels = labels or {}
        return all(req.matches(labels) for req in self.requirements)

    def __str__(self) -> str:
        return ",".join(str(req) for req in self.requirements)


def everything() -> LabelSelector:
    return LabelSelector()


def _split_requirements(selector: str) -> list[str]:
    """Split on commas that are not inside a value set."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in selector:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise SelectorParseError(f"unbalanced ')' in selector {selector!r}")
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if depth != 0:
        raise SelectorParseError(f"unbalanced '(' in selector {selector!r}")
    parts.append("".join(current))
    return parts


def _parse_requirement(text: str) -> Requirement:
    clause = text.strip()
    if not clause:
        raise SelectorParseError("empty requirement in selector")

    match = _NOT_EXISTS_RE.match(clause)
    if match:
        validate_label_key(match.group(1))
        return Requirement(match.group(1), OP_DOES_NOT_EXIST)

    match = _SET_RE.match(clause)
    if match:
        key, op, raw_values = match.groups()
        validate_label_key(key)
        values = tuple(sorted({v.strip() for v in raw_values.split(",")}))
        if any("(" in v or ")" in v for v in values):
            raise SelectorParseError(f"nested parentheses in {clause!r}")
        for value in values:
            validate_label_value(value)
        return Requirement(key, op, values)

    match = _BINARY_RE.match(clause)
    if match:
        key, op, value = match.groups()
        value = value.strip()
        validate_label_key(key)
        if op in (">", "<"):
            if not re.fullmatch(r"-?\d+", value):
                raise SelectorParseError(f"{op} requires an integer value in {clause!r}")
            return Requirement(key, OP_GREATER_THAN if op == ">" else OP_LESS_THAN, (value,))
        validate_label_value(value)
        return Requirement(key, OP_NOT_EQUALS if op == "!=" else OP_EQUALS, (value,))

    match = _EXISTS_RE.match(clause)
    if match:
        validate_label_key(match.group(1))
        return Requirement(match.group(1), OP_EXISTS)

    raise SelectorParseError(f"unable to parse requirement {clause!r}")


def parse_selector(selector: str | None) -> LabelSelector:
    """Parse a selector string.

    Raises:
        SelectorParseError: If the selector is malformed
    """
    if selector is None or not selector.strip():
        return everything()
    return LabelSelector(tuple(_parse_requirement(part) for part in _split_requirements(selector)))


def selector_from_labels(labels: Mapping[str, str]) -> str:
    """Render an equality selector for the Kubernetes API ``label_selector`` parameter."""
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))
