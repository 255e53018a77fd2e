"""
Tests for opaque filters, ORDER BY, LIMIT and COUNT queries.
"""

import pytest

from keyset_repo.filters import Filter
from keyset_repo.query_builder import QueryBuilder


class TestRawFilters:
    def test_where_raw_alone(self):
        query, params = QueryBuilder("posts").where_raw(Filter.of("id > $1", 10)).build()

        assert query == "SELECT * FROM posts WHERE (id > $1)"
        assert params == [10]

    def test_where_raw_placeholders_follow_existing_params(self):
        query, params = (
            QueryBuilder("posts")
            .where("user_id", 3)
            .where_raw(Filter.of("id >= $1 AND id <= $2", 11, 20))
            .build()
        )

        assert query == "SELECT * FROM posts WHERE user_id = $1 AND (id >= $2 AND id <= $3)"
        assert params == [3, 11, 20]

    def test_empty_filter_is_ignored(self):
        builder = QueryBuilder("posts")

        assert builder.where_raw(Filter()).to_sql() == "SELECT * FROM posts"
        assert builder.where_raw(Filter.of("   ")).to_sql() == "SELECT * FROM posts"

    def test_where_clause_returns_filter(self):
        where = QueryBuilder("posts").where("user_id", 1).where_in("id", [4, 5]).where_clause()

        assert where == Filter("user_id = $1 AND id IN ($2, $3)", [1, 4, 5])


class TestOrderingAndLimit:
    def test_order_by_directions(self):
        query, _ = (
            QueryBuilder("posts").order_by_desc("id").order_by_asc("title").build()
        )

        assert query == "SELECT * FROM posts ORDER BY id DESC, title ASC"

    def test_limit(self):
        query, params = QueryBuilder("posts").where("user_id", 1).order_by_asc("id").limit(10).build()

        assert query == "SELECT * FROM posts WHERE user_id = $1 ORDER BY id ASC LIMIT 10"
        assert params == [1]

    def test_negative_limit_is_rejected(self):
        with pytest.raises(ValueError):
            QueryBuilder("posts").limit(-1)

    def test_select_columns(self):
        assert QueryBuilder("posts").select("id", "title").to_sql() == (
            "SELECT id, title FROM posts"
        )

    def test_as_count_drops_order_and_limit(self):
        query, params = (
            QueryBuilder("posts")
            .where("user_id", 2)
            .order_by_desc("id")
            .limit(10)
            .as_count()
            .build()
        )

        assert query == "SELECT COUNT(*) FROM posts WHERE user_id = $1"
        assert params == [2]
