"""Helper functions for creating opensearch-dsl Query-type objects."""

from __future__ import annotations

import re
from typing import Any

from opensearchpy.helpers.query import (
    Bool,
    Exists,
    Query as BaseQuery,
    Range,
    Term,
    Terms,
    Wildcard,
)

from postsearch.search.parsed_request import RangeCondition, RangeOperator
from postsearch.util.datetime_helpers import beginning_of_day, end_of_day

# A * or ? that isn't already escaped. An even run of backslashes in front
# of it is a run of escaped backslashes, so the character is still live.
_UNESCAPED_ENGINE_WILDCARD = re.compile(
    r"""
    (?<!\\)        # not preceded by a backslash
    ((?:\\\\)*)    # zero or more escaped backslashes
    ([*?])         # single asterisk or question mark
    """,
    re.VERBOSE,
)
_UNESCAPED_LIKE_WILDCARD = re.compile(r"(?<!\\)((?:\\\\)*)%")
_WILDCARD_RUN = re.compile(r"(?<!\\)((?:\\\\)*)\*{2,}")


def should(*queries: BaseQuery) -> Bool:
    """At least one of `queries` must match."""
    # minimum_should_match is explicit even where a bool with no must
    # clauses would imply it.
    return Bool(should=list(queries), minimum_should_match=1)


def match_term(field: str, value: Any) -> Term:
    """A clause that matches a value exactly against a field in the search document."""
    return Term(**{field: value})


def match_range(field: str, operation: str, value: Any) -> Range:
    """Match a ranged value for a field, using an operation other than equality.

    e.g. match_range("score", "gte", 5) will match any score >= 5.
    """
    return Range(**{field: {operation: value}})


def exists(field: str) -> Exists:
    return Exists(field=field)


def add_range_relation(
    condition: RangeCondition | None, field: str, relation: list[BaseQuery]
) -> list[BaseQuery]:
    """Append the clauses for a range metatag, e.g. score:>10, to `relation`.

    Nothing is appended if there is no condition or it has no bound.

    :return: `relation`, so calls can be chained.
    """
    if not isinstance(condition, RangeCondition) or condition.value is None:
        return relation

    operator = condition.operator
    if operator == RangeOperator.eq:
        if condition.is_temporal:
            # A date matches anything during that day.
            relation.extend(
                [
                    match_range(field, "gte", beginning_of_day(condition.value)),
                    match_range(field, "lte", end_of_day(condition.value)),
                ]
            )
        else:
            relation.append(match_term(field, condition.value))
    elif operator in (
        RangeOperator.gt,
        RangeOperator.gte,
        RangeOperator.lt,
        RangeOperator.lte,
    ):
        relation.append(match_range(field, operator.value, condition.value))
    elif operator == RangeOperator.in_:
        # Only a collection of values is a bound for "in".
        if isinstance(condition.value, (list, tuple, set, frozenset)):
            relation.append(Terms(**{field: list(condition.value)}))
    elif operator == RangeOperator.between:
        relation.extend(
            [
                match_range(field, "gte", condition.value),
                match_range(field, "lte", condition.value2),
            ]
        )

    return relation


def escape_wildcards(pattern: str) -> str:
    """Escape every * and ? in `pattern` that isn't escaped already."""
    return _UNESCAPED_ENGINE_WILDCARD.sub(r"\1\\\2", pattern)


def sql_like_to_wildcard(field: str, pattern: str) -> Wildcard:
    """Convert a SQL LIKE pattern, e.g. source:*example.com/%, into a wildcard query.

    A % matches any run of characters. Characters that are wildcards to
    the search engine but not to LIKE are matched literally.
    """
    pattern = escape_wildcards(pattern)

    # Replace any unescaped SQL LIKE characters with a Kleene star.
    pattern = _UNESCAPED_LIKE_WILDCARD.sub(r"\1*", pattern)

    # Collapse runs of wildcards for efficiency.
    pattern = _WILDCARD_RUN.sub(r"\1*", pattern)

    return Wildcard(**{field: pattern})
