"""Turning an order:<token> metatag into a sort order.

Some orders only make sense over a subset of posts (order:landscape needs
posts with known dimensions), so resolving an order can also add filter
clauses, and order:random and order:rank change how posts are scored.
"""

from __future__ import annotations

import datetime
import math
from enum import StrEnum
from typing import Any

from attrs import define, field, frozen
from opensearchpy import SF
from opensearchpy.helpers.query import (
    FunctionScore,
    MatchAll,
    Query as BaseQuery,
)

from postsearch.search.constants import COUNT_METATAGS, TagCategory
from postsearch.search.parsed_request import ParsedRequest
from postsearch.search.query_helpers import exists, match_range
from postsearch.util.datetime_helpers import utc_now
from postsearch.util.log import LoggerMixin


class SortDirection(StrEnum):
    asc = "asc"
    desc = "desc"


class MissingValues(StrEnum):
    first = "_first"
    last = "_last"


@frozen
class SortField:
    """One key in a sort order: a field and the direction to sort it in."""

    field: str
    direction: SortDirection = field(converter=SortDirection)
    missing: MissingValues | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.missing is None:
            return {self.field: self.direction.value}
        return {
            self.field: dict(order=self.direction.value, missing=self.missing.value)
        }


def _sort(
    field: str, direction: str, missing: MissingValues | None = None
) -> SortField:
    return SortField(field, SortDirection(direction), missing)


def _with_id(field: str, direction: str) -> tuple[SortField, ...]:
    # Post ID is the tiebreaker, in the same direction as the main field.
    return (_sort(field, direction), _sort("id", direction))


@frozen
class OrderToken:
    """An order token split into its base name and an optional direction.

    e.g. "score_asc" is OrderToken("score", asc) and "score" is
    OrderToken("score", None).
    """

    base: str
    direction: SortDirection | None = None

    @classmethod
    def parse(cls, token: str) -> OrderToken:
        for direction in SortDirection:
            suffix = f"_{direction.value}"
            if token.endswith(suffix) and len(token) > len(suffix):
                return cls(token.removesuffix(suffix), direction)
        return cls(token)


@frozen
class ScoringFunction:
    """Replaces the relevance score of every post the query matches."""

    functions: tuple[Any, ...]
    boost_mode: str = "replace"

    @classmethod
    def random(cls, seed: int | None = None) -> ScoringFunction:
        if seed is None:
            # Let the search engine pick, so every search is shuffled differently.
            return cls((SF("random_score"),))
        return cls((SF("random_score", seed=seed, field="id"),))

    def wrap(self, query: BaseQuery) -> FunctionScore:
        return FunctionScore(
            query=query, functions=list(self.functions), boost_mode=self.boost_mode
        )


@define
class OrderResolution:
    sort: list[SortField] = field(factory=list)
    must: list[BaseQuery] = field(factory=list)
    scoring_function: ScoringFunction | None = None


class OrderResolver(LoggerMixin):
    """Resolve an order token into a sort order and any clauses it needs."""

    RANK = "rank"
    RANDOM = "random"

    # Orders that don't mean anything for posts without a known width and
    # height.
    REQUIRES_DIMENSIONS = frozenset(
        ("landscape", "portrait", "mpixels", "mpixels_desc")
    )

    REQUIRES_COMMENT_BUMPED = frozenset(("comment_bumped", "comment_bumped_asc"))

    # order:rank only considers posts this new.
    RANK_WINDOW = datetime.timedelta(days=2)

    # Rank is log3(score), plus one point for every 35000 seconds the post
    # was created after 2005-05-24.
    RANK_SCRIPT = (
        "Math.log(doc['score'].value) / params.log3 + "
        "(doc['created_at'].value.millis / 1000 - params.date2005_05_24) / 35000"
    )
    RANK_EPOCH = 1116936000

    BY_SCORE = (_sort("_score", "desc"),)

    DEFAULT_ORDER = (_sort("id", "desc"),)

    STATIC_ORDERS: dict[str, tuple[SortField, ...]] = {
        "id": (_sort("id", "asc"),),
        "id_asc": (_sort("id", "asc"),),
        "id_desc": (_sort("id", "desc"),),
        "change": (_sort("change_seq", "desc"),),
        "change_desc": (_sort("change_seq", "desc"),),
        "change_asc": (_sort("change_seq", "asc"),),
        "md5": (_sort("md5", "desc"),),
        "md5_asc": (_sort("md5", "asc"),),
        "score": _with_id("score", "desc"),
        "score_desc": _with_id("score", "desc"),
        "score_asc": _with_id("score", "asc"),
        "duration": _with_id("duration", "desc"),
        "duration_desc": _with_id("duration", "desc"),
        "duration_asc": _with_id("duration", "asc"),
        "favcount": _with_id("fav_count", "desc"),
        "favcount_asc": _with_id("fav_count", "asc"),
        "created_at": (_sort("created_at", "desc"),),
        "created_at_desc": (_sort("created_at", "desc"),),
        "created_at_asc": (_sort("created_at", "asc"),),
        "updated": _with_id("updated_at", "desc"),
        "updated_desc": _with_id("updated_at", "desc"),
        "updated_asc": _with_id("updated_at", "asc"),
        "comment": (
            _sort("commented_at", "desc", MissingValues.last),
            _sort("id", "desc"),
        ),
        "comm": (
            _sort("commented_at", "desc", MissingValues.last),
            _sort("id", "desc"),
        ),
        "comment_asc": (
            _sort("commented_at", "asc", MissingValues.last),
            _sort("id", "asc"),
        ),
        "comm_asc": (
            _sort("commented_at", "asc", MissingValues.last),
            _sort("id", "asc"),
        ),
        "comment_bumped": (
            _sort("comment_bumped_at", "desc", MissingValues.last),
            _sort("id", "desc"),
        ),
        # Newest posts still come first among posts bumped at the same time.
        "comment_bumped_asc": (
            _sort("comment_bumped_at", "asc", MissingValues.last),
            _sort("id", "desc"),
        ),
        "note": (_sort("noted_at", "desc", MissingValues.last),),
        "note_asc": (_sort("noted_at", "asc", MissingValues.first),),
        "mpixels": (_sort("mpixels", "desc"),),
        "mpixels_desc": (_sort("mpixels", "desc"),),
        "mpixels_asc": (_sort("mpixels", "asc"),),
        "portrait": (_sort("aspect_ratio", "asc"),),
        "landscape": (_sort("aspect_ratio", "desc"),),
        "filesize": (_sort("file_size", "desc"),),
        "filesize_desc": (_sort("file_size", "desc"),),
        "filesize_asc": (_sort("file_size", "asc"),),
        "tagcount": (_sort("tag_count", "desc"),),
        "tagcount_desc": (_sort("tag_count", "desc"),),
        "tagcount_asc": (_sort("tag_count", "asc"),),
    }

    def __init__(self, request: ParsedRequest) -> None:
        order = request.scalar("order")
        self.token: str | None = str(order) if order is not None else None
        self.request = request

    def resolve(self) -> OrderResolution:
        resolution = OrderResolution()
        resolution.must.extend(self.prefilters())

        if self.token == self.RANK:
            resolution.must.append(self.rank_query())
            resolution.sort.extend(self.BY_SCORE)
        elif self.token == self.RANDOM:
            resolution.scoring_function = self.random_scoring_function()
            resolution.sort.extend(self.BY_SCORE)
        else:
            resolution.sort.extend(self.sort_fields())
        return resolution

    def prefilters(self) -> list[BaseQuery]:
        """Clauses an order adds to the query so it can be applied."""
        if self.token == self.RANK:
            return [
                match_range("score", "gt", 0),
                match_range("created_at", "gte", utc_now() - self.RANK_WINDOW),
            ]
        elif self.token in self.REQUIRES_DIMENSIONS:
            return [exists("width"), exists("height")]
        elif self.token in self.REQUIRES_COMMENT_BUMPED:
            return [exists("comment_bumped_at")]
        return []

    def sort_fields(self) -> tuple[SortField, ...]:
        if self.token is None:
            return self.DEFAULT_ORDER

        static = self.STATIC_ORDERS.get(self.token)
        if static is not None:
            return static

        return (
            self._count_metatag_order(self.token)
            or self._tag_category_order(self.token)
            or self.DEFAULT_ORDER
        )

    @classmethod
    def _count_metatag_order(cls, token: str) -> tuple[SortField, ...] | None:
        """order:comment_count, order:comment_count_asc, ..."""
        parsed = OrderToken.parse(token.lower())
        if parsed.base not in COUNT_METATAGS:
            return None
        direction = parsed.direction or SortDirection.desc
        return _with_id(parsed.base, direction)

    @classmethod
    def _tag_category_order(cls, token: str) -> tuple[SortField, ...] | None:
        """order:arttags, order:chartags_asc, ..."""
        parsed = OrderToken.parse(token)
        short_name = parsed.base.removesuffix("tags")
        if short_name == parsed.base:
            return None
        category = TagCategory.SHORT_NAME_MAPPING.get(short_name)
        if category is None:
            return None
        direction = parsed.direction or SortDirection.desc
        return (_sort(TagCategory.count_field(category), direction),)

    def rank_query(self) -> FunctionScore:
        script = dict(
            params=dict(log3=math.log(3), date2005_05_24=self.RANK_EPOCH),
            source=self.RANK_SCRIPT,
        )
        return FunctionScore(
            query=MatchAll(), functions=[SF("script_score", script=script)]
        )

    def random_scoring_function(self) -> ScoringFunction:
        if self.request.scalar("random") is None:
            return ScoringFunction.random()
        return ScoringFunction.random(self.request.integer("random"))
