"""The metatag values a search is compiled from.

The tokenizer that turns a query string into these values lives outside
this package. What it hands over is a plain mapping from metatag name
(and ``<name>_neg`` for a negated metatag) to a value; `ParsedRequest`
wraps that mapping and sorts each value into one of the shapes the
compiler understands.
"""

from __future__ import annotations

import datetime
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from attrs import field, frozen

_LEADING_INTEGER = re.compile(r"\s*[+-]?\d+")


class RangeOperator(StrEnum):
    eq = "eq"
    gt = "gt"
    gte = "gte"
    lt = "lt"
    lte = "lte"
    in_ = "in"
    between = "between"


@frozen
class RangeCondition:
    """A comparison against a numeric or temporal field.

    `value2` is only used by `between`, where it is the upper bound.
    `in` takes a list of values as `value`.
    """

    operator: RangeOperator = field(converter=RangeOperator)
    value: Any = None
    value2: Any = None

    @property
    def is_temporal(self) -> bool:
        # datetime.datetime is a subclass of datetime.date.
        return isinstance(self.value, datetime.date)

    @classmethod
    def from_tuple(cls, value: Sequence[Any]) -> RangeCondition | None:
        """Convert an (operator, bound[, bound2]) tuple.

        :return: None if the tuple doesn't start with a known operator.
        """
        if not value or value[0] not in RangeOperator:
            return None
        return cls(*value[:3])


def _tag_list(value: Sequence[str] | None) -> tuple[str, ...]:
    return tuple(value or ())


@frozen
class TagGrouping:
    """The plain tags of a search.

    At least one `include` tag must match, every `related` tag must match,
    and no `exclude` tag may match.
    """

    include: tuple[str, ...] = field(default=(), converter=_tag_list)
    exclude: tuple[str, ...] = field(default=(), converter=_tag_list)
    related: tuple[str, ...] = field(default=(), converter=_tag_list)

    KEYS = frozenset(("include", "exclude", "related"))

    @classmethod
    def from_mapping(cls, value: Mapping[str, Any]) -> TagGrouping:
        return cls(**{k: v for k, v in value.items() if k in cls.KEYS})


def _coerce(value: Any) -> Any:
    if isinstance(value, tuple):
        return RangeCondition.from_tuple(value) or value
    if isinstance(value, Mapping):
        if "operator" in value and value["operator"] in RangeOperator:
            return RangeCondition(
                value["operator"], value.get("value"), value.get("value2")
            )
        if value.keys() and value.keys() <= TagGrouping.KEYS:
            return TagGrouping.from_mapping(value)
    return value


def _frozen_mapping(value: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType({str(k): _coerce(v) for k, v in value.items()})


@frozen
class ParsedRequest:
    """A read-only view of the metatags in a search.

    Each accessor asks for a value of a particular shape. A value of any
    other shape is treated as if it weren't there, so a metatag the
    tokenizer got wrong is ignored rather than compiled into a bad clause.
    """

    metatags: Mapping[str, Any] = field(factory=dict, converter=_frozen_mapping)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | ParsedRequest) -> ParsedRequest:
        if isinstance(mapping, ParsedRequest):
            return mapping
        return cls(mapping)

    def __contains__(self, key: str) -> bool:
        return key in self.metatags

    def __iter__(self) -> Iterator[str]:
        return iter(self.metatags)

    def get(self, key: str, default: Any = None) -> Any:
        return self.metatags.get(key, default)

    def scalar(self, key: str) -> Any:
        """A single value, e.g. rating:s. Empty strings count as missing."""
        value = self.metatags.get(key)
        if isinstance(
            value, (RangeCondition, TagGrouping, Mapping, list, tuple, set)
        ):
            return None
        if value == "":
            return None
        return value

    def integer(self, key: str, default: int = 0) -> int:
        """The leading integer of a scalar value, e.g. random:42.

        Values that don't start with a number give `default`.
        """
        value = self.scalar(key)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        match = _LEADING_INTEGER.match(str(value)) if value is not None else None
        return int(match.group(0)) if match else default

    def range(self, key: str) -> RangeCondition | None:
        value = self.metatags.get(key)
        return value if isinstance(value, RangeCondition) else None

    def values(self, key: str) -> tuple[Any, ...] | None:
        """A list of values, e.g. the user IDs behind a user:<name> search."""
        value = self.metatags.get(key)
        if isinstance(value, (list, tuple)):
            return tuple(value)
        return None

    def tag_grouping(self, key: str = "tags") -> TagGrouping | None:
        value = self.metatags.get(key)
        return value if isinstance(value, TagGrouping) else None


# Reduces a free-text query string to the metatag mapping above.
QueryTokenizer = Callable[[str], Mapping[str, Any]]
