"""Filtering posts by where they are in the moderation lifecycle."""

from __future__ import annotations

from opensearchpy.helpers.query import Query as BaseQuery

from postsearch.search.parsed_request import ParsedRequest
from postsearch.search.query_helpers import match_term, should


class PostStatus:
    PENDING = "pending"
    FLAGGED = "flagged"
    MODQUEUE = "modqueue"
    DELETED = "deleted"
    ACTIVE = "active"
    ALL = "all"
    ANY = "any"

    # Searching for any of these means the person wants to see deleted
    # posts, or explicitly doesn't, so the default of hiding them is
    # turned off.
    SHOWS_DELETED = frozenset((DELETED, ACTIVE, ANY, ALL))


def add_status_relation(
    request: ParsedRequest, must: list[BaseQuery], must_not: list[BaseQuery]
) -> None:
    """Add the clauses for status:<value> or -status:<value>.

    Only one status is compiled. A positive status wins over a negated one.
    """
    status = request.scalar("status")
    status_neg = request.scalar("status_neg")

    pending = match_term("pending", True)
    flagged = match_term("flagged", True)
    deleted = match_term("deleted", True)

    if status == PostStatus.PENDING:
        must.append(pending)
    elif status == PostStatus.FLAGGED:
        must.append(flagged)
    elif status == PostStatus.MODQUEUE:
        must.append(should(pending, flagged))
    elif status == PostStatus.DELETED:
        must.append(deleted)
    elif status == PostStatus.ACTIVE:
        must.extend(
            [
                match_term("pending", False),
                match_term("deleted", False),
                match_term("flagged", False),
            ]
        )
    elif status in (PostStatus.ALL, PostStatus.ANY):
        pass
    elif status_neg == PostStatus.PENDING:
        must_not.append(pending)
    elif status_neg == PostStatus.FLAGGED:
        must_not.append(flagged)
    elif status_neg == PostStatus.MODQUEUE:
        must_not.append(should(pending, flagged))
    elif status_neg == PostStatus.DELETED:
        must_not.append(deleted)
    elif status_neg == PostStatus.ACTIVE:
        # Not a negation of status:active: this requires the post to be
        # in at least one of the inactive states.
        must.append(should(pending, deleted, flagged))


def hide_deleted_posts(request: ParsedRequest, admin_mode: bool) -> bool:
    """Should deleted posts be left out of the results?"""
    if admin_mode:
        return False
    if request.scalar("status") in PostStatus.SHOWS_DELETED:
        return False
    if request.scalar("status_neg") in PostStatus.SHOWS_DELETED:
        return False
    return True


def add_visibility_relation(
    request: ParsedRequest, admin_mode: bool, must: list[BaseQuery]
) -> None:
    if hide_deleted_posts(request, admin_mode):
        must.append(match_term("deleted", False))
