import datetime
import math

import pytest
from freezegun import freeze_time
from opensearchpy import SF
from opensearchpy.helpers.query import (
    Bool,
    Exists,
    FunctionScore,
    MatchAll,
    Range,
    Term,
)

from postsearch.search.order import (
    MissingValues,
    OrderResolver,
    OrderToken,
    ScoringFunction,
    SortDirection,
    SortField,
)
from postsearch.search.parsed_request import ParsedRequest
from tests.fixtures.time import datetime_utc


def sort_order(resolution):
    return [field.to_dict() for field in resolution.sort]


def resolve(order=None, **metatags):
    if order is not None:
        metatags["order"] = order
    return OrderResolver(ParsedRequest.from_mapping(metatags)).resolve()


class TestSortField:
    def test_to_dict(self):
        assert {"score": "desc"} == SortField("score", "desc").to_dict()
        assert {"noted_at": {"order": "asc", "missing": "_first"}} == SortField(
            "noted_at", SortDirection.asc, MissingValues.first
        ).to_dict()

    def test_bad_direction(self):
        with pytest.raises(ValueError):
            SortField("score", "sideways")


class TestOrderToken:
    @pytest.mark.parametrize(
        "token, base, direction",
        [
            ("score", "score", None),
            ("score_asc", "score", SortDirection.asc),
            ("score_desc", "score", SortDirection.desc),
            ("comment_count_asc", "comment_count", SortDirection.asc),
            ("arttags", "arttags", None),
            ("scoreasc", "scoreasc", None),
            ("_asc", "_asc", None),
        ],
    )
    def test_parse(self, token: str, base: str, direction: SortDirection | None):
        assert OrderToken(base, direction) == OrderToken.parse(token)


class TestSortOrder:
    @pytest.mark.parametrize(
        "token, expected",
        [
            (None, [{"id": "desc"}]),
            ("id", [{"id": "asc"}]),
            ("id_asc", [{"id": "asc"}]),
            ("id_desc", [{"id": "desc"}]),
            ("change", [{"change_seq": "desc"}]),
            ("change_asc", [{"change_seq": "asc"}]),
            ("md5", [{"md5": "desc"}]),
            ("md5_asc", [{"md5": "asc"}]),
            ("score", [{"score": "desc"}, {"id": "desc"}]),
            ("score_desc", [{"score": "desc"}, {"id": "desc"}]),
            ("score_asc", [{"score": "asc"}, {"id": "asc"}]),
            ("duration", [{"duration": "desc"}, {"id": "desc"}]),
            ("duration_asc", [{"duration": "asc"}, {"id": "asc"}]),
            ("favcount", [{"fav_count": "desc"}, {"id": "desc"}]),
            ("favcount_asc", [{"fav_count": "asc"}, {"id": "asc"}]),
            ("created_at", [{"created_at": "desc"}]),
            ("created_at_asc", [{"created_at": "asc"}]),
            ("updated", [{"updated_at": "desc"}, {"id": "desc"}]),
            ("updated_asc", [{"updated_at": "asc"}, {"id": "asc"}]),
            (
                "comment",
                [
                    {"commented_at": {"order": "desc", "missing": "_last"}},
                    {"id": "desc"},
                ],
            ),
            (
                "comm_asc",
                [
                    {"commented_at": {"order": "asc", "missing": "_last"}},
                    {"id": "asc"},
                ],
            ),
            (
                "comment_bumped_asc",
                [
                    {"comment_bumped_at": {"order": "asc", "missing": "_last"}},
                    {"id": "desc"},
                ],
            ),
            ("note", [{"noted_at": {"order": "desc", "missing": "_last"}}]),
            ("note_asc", [{"noted_at": {"order": "asc", "missing": "_first"}}]),
            ("mpixels", [{"mpixels": "desc"}]),
            ("mpixels_asc", [{"mpixels": "asc"}]),
            ("portrait", [{"aspect_ratio": "asc"}]),
            ("landscape", [{"aspect_ratio": "desc"}]),
            ("filesize", [{"file_size": "desc"}]),
            ("filesize_asc", [{"file_size": "asc"}]),
            ("tagcount", [{"tag_count": "desc"}]),
            ("tagcount_asc", [{"tag_count": "asc"}]),
            ("scoreasc", [{"id": "desc"}]),
            ("nonsense", [{"id": "desc"}]),
        ],
    )
    def test_static_orders(self, token, expected):
        assert expected == sort_order(resolve(token))

    @pytest.mark.parametrize(
        "token, expected",
        [
            ("comment_count", [{"comment_count": "desc"}, {"id": "desc"}]),
            ("comment_count_desc", [{"comment_count": "desc"}, {"id": "desc"}]),
            ("comment_count_asc", [{"comment_count": "asc"}, {"id": "asc"}]),
            ("COMMENT_COUNT_ASC", [{"comment_count": "asc"}, {"id": "asc"}]),
            ("arttags", [{"tag_count_artist": "desc"}]),
            ("chartags_desc", [{"tag_count_character": "desc"}]),
            ("spectags_asc", [{"tag_count_species": "asc"}]),
            ("lortags", [{"tag_count_lore": "desc"}]),
            # Not a known category.
            ("footags", [{"id": "desc"}]),
            ("tags", [{"id": "desc"}]),
            ("xarttags", [{"id": "desc"}]),
        ],
    )
    def test_parametric_orders(self, token, expected):
        assert expected == sort_order(resolve(token))

    def test_no_prefilters_for_plain_orders(self):
        resolution = resolve("score")
        assert [] == resolution.must
        assert resolution.scoring_function is None


class TestPrefilters:
    @pytest.mark.parametrize(
        "token", ["landscape", "portrait", "mpixels", "mpixels_desc"]
    )
    def test_dimensions(self, token):
        assert [Exists(field="width"), Exists(field="height")] == resolve(token).must

    def test_mpixels_asc_has_no_prefilter(self):
        assert [] == resolve("mpixels_asc").must

    @pytest.mark.parametrize("token", ["comment_bumped", "comment_bumped_asc"])
    def test_comment_bumped(self, token):
        assert [Exists(field="comment_bumped_at")] == resolve(token).must

    @freeze_time("2020-01-15T12:00:00+00:00")
    def test_rank(self):
        resolution = resolve("rank")
        [positive_score, recent, rank] = resolution.must
        assert Range(score=dict(gt=0)) == positive_score
        assert (
            Range(created_at=dict(gte=datetime_utc(2020, 1, 13, 12, 0, 0))) == recent
        )
        assert isinstance(rank, FunctionScore)
        assert [{"_score": "desc"}] == sort_order(resolution)
        assert resolution.scoring_function is None


class TestScoring:
    def test_rank_query(self):
        query = OrderResolver(ParsedRequest()).rank_query()
        script = dict(
            params=dict(log3=math.log(3), date2005_05_24=1116936000),
            source=OrderResolver.RANK_SCRIPT,
        )
        assert (
            FunctionScore(
                query=MatchAll(), functions=[SF("script_score", script=script)]
            )
            == query
        )
        body = query.to_dict()["function_score"]
        assert {"match_all": {}} == body["query"]
        [function] = body["functions"]
        assert "doc['score'].value" in function["script_score"]["script"]["source"]

    def test_random_with_seed(self):
        resolution = resolve("random", random="42")
        assert ScoringFunction((SF("random_score", seed=42, field="id"),)) == (
            resolution.scoring_function
        )
        assert [{"_score": "desc"}] == sort_order(resolution)
        assert [] == resolution.must

    def test_random_without_seed(self):
        resolution = resolve("random")
        assert ScoringFunction((SF("random_score"),)) == resolution.scoring_function

        # A blank seed is no seed.
        resolution = resolve("random", random="")
        assert ScoringFunction((SF("random_score"),)) == resolution.scoring_function

    def test_wrap(self):
        query = Bool(must=[Term(rating="s")])
        wrapped = ScoringFunction.random(7).wrap(query)
        assert {
            "function_score": {
                "query": {"bool": {"must": [{"term": {"rating": "s"}}]}},
                "functions": [{"random_score": {"seed": 7, "field": "id"}}],
                "boost_mode": "replace",
            }
        } == wrapped.to_dict()
