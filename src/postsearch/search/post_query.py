from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from opensearchpy import Search
from opensearchpy.helpers.query import (
    Bool,
    Match,
    MatchAll,
    Prefix,
    Query as BaseQuery,
)

from postsearch.core.exceptions import PostSearchValueError, TagQueryLimitExceeded
from postsearch.search.constants import (
    COUNT_METATAGS,
    LOCK_TYPE_TO_INDEX_FIELD,
    MISSING_LOCK_FIELD,
    SAFE_RATING,
    TagCategory,
)
from postsearch.search.order import OrderResolver, ScoringFunction, SortField
from postsearch.search.parsed_request import ParsedRequest, QueryTokenizer, TagGrouping
from postsearch.search.query_helpers import (
    add_range_relation,
    exists,
    match_term,
    should,
    sql_like_to_wildcard,
)
from postsearch.search.session import SessionContext
from postsearch.search.status import add_status_relation, add_visibility_relation
from postsearch.service.logging.configuration import LogLevel
from postsearch.util.log import LoggerMixin, log_elapsed_time, pluralize


def match_text(field: str, value: Any) -> Match:
    """A clause that matches analyzed text, e.g. a word in a description."""
    return Match(**{field: value})


class PostQueryBuilder(LoggerMixin):
    """Compile the metatags of a post search into an OpenSearch request.

    A builder compiles a single search. The clauses collected while
    compiling are kept on the builder so they can be inspected afterwards:

    * `must`: every one of these clauses must match.
    * `must_not`: none of these clauses may match.
    * `order`: the sort order, most significant field first.
    * `scoring_function`: set when the order replaces relevance scoring.
    """

    # Range metatags and the search document field each one compares.
    RANGE_METATAGS: tuple[tuple[str, str], ...] = (
        ("post_id", "id"),
        ("mpixels", "mpixels"),
        ("ratio", "aspect_ratio"),
        ("width", "width"),
        ("height", "height"),
        ("duration", "duration"),
        ("score", "score"),
        ("fav_count", "fav_count"),
        ("filesize", "file_size"),
        ("change_seq", "change_seq"),
        ("date", "created_at"),
        ("age", "created_at"),
    )

    # (metatag, search document field, metatag for <name>:any / <name>:none)
    ARRAY_RELATIONS: tuple[tuple[str, str, str | None], ...] = (
        ("uploader_ids", "uploader", None),
        ("approver_ids", "approver", "approver"),
        ("commenter_ids", "commenters", "commenter"),
        ("noter_ids", "noters", "noter"),
        # There is no note updater field in the index, so this matches noters.
        ("note_updater_ids", "noters", None),
        ("pool_ids", "pools", "pool"),
        ("set_ids", "sets", None),
        ("fav_ids", "faves", None),
        ("parent_ids", "parent", "parent"),
    )

    SINGLE_RELATIONS: tuple[tuple[str, str, Callable[[str, Any], BaseQuery]], ...] = (
        ("rating", "rating", match_term),
        ("filetype", "file_ext", match_term),
        ("description", "description", match_text),
        ("note", "notes", match_text),
        ("deleter", "deleter", match_term),
        ("upvote", "upvotes", match_term),
        ("downvote", "downvotes", match_term),
    )

    # Metatags like hassource:true that test whether a field has a value.
    PRESENCE_METATAGS: tuple[tuple[str, str], ...] = (
        ("hassource", "source"),
        ("hasdescription", "description"),
        ("ischild", "parent"),
        ("inpool", "pools"),
    )

    # Metatags whose value is compared directly against a boolean field.
    BOOLEAN_METATAGS: tuple[tuple[str, str], ...] = (
        ("isparent", "has_children"),
        ("pending_replacements", "has_pending_replacements"),
    )

    # source:none% and source:http% are common enough to get exact clauses
    # instead of wildcard queries.
    SOURCE_NONE = "none%"
    SOURCE_HTTP = "http%"

    def __init__(
        self,
        query: Mapping[str, Any] | ParsedRequest | str,
        session: SessionContext | None = None,
        tokenizer: QueryTokenizer | None = None,
    ):
        """Constructor.

        :param query: The metatags to search for, or a query string to
            run through `tokenizer` first.
        :param session: The person searching. Defaults to an anonymous
            session with the default limits.
        :param tokenizer: Turns a query string into metatags. Only needed
            when `query` is a string.
        """
        self.query = query
        self.session = session or SessionContext()
        self.tokenizer = tokenizer
        self._reset()

    def _reset(self) -> None:
        self.must: list[BaseQuery] = []
        self.must_not: list[BaseQuery] = []
        self.order: list[SortField] = []
        self.scoring_function: ScoringFunction | None = None

    def parse(self) -> ParsedRequest:
        if isinstance(self.query, str):
            if self.tokenizer is None:
                raise PostSearchValueError(
                    "A query string can't be compiled without a tokenizer."
                )
            return ParsedRequest.from_mapping(self.tokenizer(self.query))
        return ParsedRequest.from_mapping(self.query)

    def check_tag_count(self, q: ParsedRequest) -> None:
        tag_count = q.integer("tag_count")
        limit = self.session.tag_query_limit
        if tag_count > limit:
            self.log.info(
                "Rejected a search for %s, the limit is %d.",
                pluralize(tag_count, "tag"),
                limit,
            )
            raise TagQueryLimitExceeded(limit, tag_count)

    def add_array_relation(
        self,
        q: ParsedRequest,
        key: str,
        index_field: str,
        any_none_key: str | None = None,
    ) -> None:
        for value in q.values(key) or ():
            self.must.append(match_term(index_field, value))

        for value in q.values(f"{key}_neg") or ():
            self.must_not.append(match_term(index_field, value))

        if any_none_key is None:
            return
        toggle = q.scalar(any_none_key)
        if toggle == "any":
            self.must.append(exists(index_field))
        elif toggle == "none":
            self.must_not.append(exists(index_field))

    def add_single_relation(
        self,
        q: ParsedRequest,
        key: str,
        index_field: str,
        action: Callable[[str, Any], BaseQuery] = match_term,
    ) -> None:
        value = q.scalar(key)
        if value is not None:
            self.must.append(action(index_field, value))

        value = q.scalar(f"{key}_neg")
        if value is not None:
            self.must_not.append(action(index_field, value))

    @staticmethod
    def add_tag_string_search_relation(
        tags: TagGrouping, relation: list[BaseQuery]
    ) -> list[BaseQuery]:
        """Append the clause for the plain tags of a search to `relation`."""
        should_match = [match_term("tags", tag) for tag in tags.include]
        must = [match_term("tags", tag) for tag in tags.related]
        must_not = [match_term("tags", tag) for tag in tags.exclude]

        if should_match:
            # At least one of the 'or' tags is required, alongside
            # the required and excluded tags.
            search = Bool(
                should=should_match,
                must=must,
                must_not=must_not,
                minimum_should_match=1,
            )
        else:
            search = Bool(should=should_match, must=must, must_not=must_not)
        relation.append(search)
        return relation

    def add_source_relation(self, q: ParsedRequest) -> None:
        source = q.scalar("source")
        if source is not None:
            if source == self.SOURCE_NONE:
                self.must_not.append(exists("source"))
            elif source == self.SOURCE_HTTP:
                self.must.append(Prefix(source="http"))
            else:
                self.must.append(sql_like_to_wildcard("source", str(source)))

        source_neg = q.scalar("source_neg")
        if source_neg is not None:
            if source_neg == self.SOURCE_NONE:
                self.must.append(exists("source"))
            elif source_neg == self.SOURCE_HTTP:
                self.must_not.append(Prefix(source="http"))
            else:
                self.must_not.append(sql_like_to_wildcard("source", str(source_neg)))

    def add_wildcard_relation(
        self, q: ParsedRequest, key: str, index_field: str
    ) -> None:
        value = q.scalar(key)
        if value is not None:
            self.must.append(sql_like_to_wildcard(index_field, str(value)))

        value = q.scalar(f"{key}_neg")
        if value is not None:
            self.must_not.append(sql_like_to_wildcard(index_field, str(value)))

    def add_vote_relation(self, q: ParsedRequest) -> None:
        voted = q.scalar("voted")
        if voted is not None:
            self.must.append(
                should(match_term("upvotes", voted), match_term("downvotes", voted))
            )

        voted_neg = q.scalar("voted_neg")
        if voted_neg is not None:
            self.must_not.extend(
                [match_term("upvotes", voted_neg), match_term("downvotes", voted_neg)]
            )

    def add_lock_relation(self, q: ParsedRequest) -> None:
        # An unknown lock type is looked up as a field that no post has.
        for lock_type in q.values("locked") or ():
            field = LOCK_TYPE_TO_INDEX_FIELD.get(lock_type, MISSING_LOCK_FIELD)
            self.must.append(match_term(field, True))

        for lock_type in q.values("locked_neg") or ():
            field = LOCK_TYPE_TO_INDEX_FIELD.get(lock_type, MISSING_LOCK_FIELD)
            self.must.append(match_term(field, False))

    def add_relations(self, q: ParsedRequest) -> None:
        """Compile every filter metatag in `q` into clauses."""
        if self.session.safe_mode:
            self.must.append(match_term("rating", SAFE_RATING))

        for key, field in self.RANGE_METATAGS:
            add_range_relation(q.range(key), field, self.must)

        for category in TagCategory.CATEGORIES:
            add_range_relation(
                q.range(f"{category}_tag_count"),
                TagCategory.count_field(category),
                self.must,
            )

        add_range_relation(q.range("post_tag_count"), "tag_count", self.must)

        for column in COUNT_METATAGS:
            add_range_relation(q.range(column), column, self.must)

        md5s = q.values("md5")
        if md5s:
            self.must.append(should(*(match_term("md5", md5) for md5 in md5s)))

        add_status_relation(q, self.must, self.must_not)
        add_visibility_relation(q, self.session.admin_mode, self.must)

        self.add_source_relation(q)

        for key, index_field, any_none_key in self.ARRAY_RELATIONS:
            self.add_array_relation(q, key, index_field, any_none_key=any_none_key)

        for key, index_field, action in self.SINGLE_RELATIONS:
            self.add_single_relation(q, key, index_field, action=action)

        self.add_vote_relation(q)
        self.add_wildcard_relation(q, "delreason", "del_reason")

        post_id_neg = q.scalar("post_id_neg")
        if post_id_neg is not None:
            self.must_not.append(match_term("id", post_id_neg))

        child = q.scalar("child")
        if child == "none":
            self.must.append(match_term("has_children", False))
        elif child == "any":
            self.must.append(match_term("has_children", True))

        self.add_lock_relation(q)

        for key, field in self.PRESENCE_METATAGS:
            if key in q:
                (self.must if q.get(key) else self.must_not).append(exists(field))

        for key, field in self.BOOLEAN_METATAGS:
            if key in q:
                self.must.append(match_term(field, q.get(key)))

        tags = q.tag_grouping()
        if tags is not None:
            self.add_tag_string_search_relation(tags, self.must)

    def add_order(self, q: ParsedRequest) -> None:
        resolution = OrderResolver(q).resolve()
        self.must.extend(resolution.must)
        self.order = resolution.sort
        self.scoring_function = resolution.scoring_function

    def assemble(self, search: Search | None = None) -> Search:
        """Put the collected clauses together into a search request."""
        if not self.must:
            # Nothing is required, only excluded.
            self.must.append(MatchAll())

        query: BaseQuery = Bool(must=self.must, must_not=self.must_not)
        if self.scoring_function is not None:
            query = self.scoring_function.wrap(query)

        search = search if search is not None else Search()
        return (
            search.query(query)
            .sort(*(field.to_dict() for field in self.order))
            # Callers only need post IDs, which come back with every hit.
            .source(False)
            .extra(timeout=self.session.timeout)
        )

    @log_elapsed_time(
        log_level=LogLevel.debug,
        message_prefix="Compiling post search",
        skip_start=True,
    )
    def build(self, search: Search | None = None) -> Search:
        """Compile the search.

        :param search: A Search to add the query to, e.g. one bound to a
            client and an index. A new, unbound Search is used otherwise.
        :raise TagQueryLimitExceeded: If the search names more tags than
            the session allows. Nothing is compiled in that case.
        """
        self._reset()
        q = self.parse()
        self.check_tag_count(q)

        self.add_relations(q)
        self.add_order(q)
        return self.assemble(search)

    def to_dict(self) -> dict[str, Any]:
        """The body of the search request."""
        return self.build().to_dict()
