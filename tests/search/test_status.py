import pytest
from opensearchpy.helpers.query import Term

from postsearch.search.parsed_request import ParsedRequest
from postsearch.search.query_helpers import should
from postsearch.search.status import (
    add_status_relation,
    add_visibility_relation,
    hide_deleted_posts,
)

PENDING = Term(pending=True)
FLAGGED = Term(flagged=True)
DELETED = Term(deleted=True)


def resolve(**metatags):
    must: list = []
    must_not: list = []
    add_status_relation(ParsedRequest.from_mapping(metatags), must, must_not)
    return must, must_not


class TestStatus:
    @pytest.mark.parametrize(
        "status, expected_must",
        [
            ("pending", [PENDING]),
            ("flagged", [FLAGGED]),
            ("modqueue", [should(PENDING, FLAGGED)]),
            ("deleted", [DELETED]),
            (
                "active",
                [Term(pending=False), Term(deleted=False), Term(flagged=False)],
            ),
            ("all", []),
            ("any", []),
            ("unknown", []),
        ],
    )
    def test_status(self, status: str, expected_must: list):
        must, must_not = resolve(status=status)
        assert expected_must == must
        assert [] == must_not

    @pytest.mark.parametrize(
        "status, expected_must_not",
        [
            ("pending", [PENDING]),
            ("flagged", [FLAGGED]),
            ("modqueue", [should(PENDING, FLAGGED)]),
            ("deleted", [DELETED]),
            ("all", []),
            ("any", []),
        ],
    )
    def test_negated_status(self, status: str, expected_must_not: list):
        must, must_not = resolve(status_neg=status)
        assert [] == must
        assert expected_must_not == must_not

    def test_negated_active(self):
        # -status:active requires one of the inactive states, instead of
        # excluding the clauses status:active would add.
        must, must_not = resolve(status_neg="active")
        assert [should(PENDING, DELETED, FLAGGED)] == must
        assert [] == must_not

    def test_positive_status_wins(self):
        must, must_not = resolve(status="pending", status_neg="flagged")
        assert [PENDING] == must
        assert [] == must_not

        # Even status:all, which adds nothing, keeps -status from being used.
        must, must_not = resolve(status="all", status_neg="flagged")
        assert [] == must
        assert [] == must_not

        # An unrecognized status doesn't.
        must, must_not = resolve(status="bogus", status_neg="flagged")
        assert [] == must
        assert [FLAGGED] == must_not

    def test_no_status(self):
        assert ([], []) == resolve()


class TestVisibility:
    @pytest.mark.parametrize(
        "metatags, hidden",
        [
            ({}, True),
            ({"status": "pending"}, True),
            ({"status": "flagged"}, True),
            ({"status": "modqueue"}, True),
            ({"status": "deleted"}, False),
            ({"status": "active"}, False),
            ({"status": "any"}, False),
            ({"status": "all"}, False),
            ({"status_neg": "pending"}, True),
            ({"status_neg": "deleted"}, False),
            ({"status_neg": "active"}, False),
            ({"status_neg": "any"}, False),
            ({"status_neg": "all"}, False),
        ],
    )
    def test_hide_deleted_posts(self, metatags: dict, hidden: bool):
        request = ParsedRequest.from_mapping(metatags)
        assert hidden is hide_deleted_posts(request, admin_mode=False)

        # Admins in admin mode always see deleted posts.
        assert False is hide_deleted_posts(request, admin_mode=True)

    def test_add_visibility_relation(self):
        must: list = []
        add_visibility_relation(ParsedRequest(), False, must)
        assert [Term(deleted=False)] == must

        must = []
        add_visibility_relation(ParsedRequest(), True, must)
        assert [] == must

        must = []
        add_visibility_relation(
            ParsedRequest.from_mapping({"status": "deleted"}), False, must
        )
        assert [] == must
