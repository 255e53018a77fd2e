"""
Tests for WHERE conditions, operators, and parameter indexing.
"""

import pytest

from keyset_repo.query_builder import QueryBuilder


class TestWhereConditions:
    """Test cases for WHERE clause functionality"""

    def test_single_where_condition(self):
        builder = QueryBuilder("posts")
        query, params = builder.where("id", 42).build()

        assert query == "SELECT * FROM posts WHERE id = $1"
        assert params == [42]

    def test_multiple_where_conditions(self):
        builder = QueryBuilder("posts")
        query, params = builder.where("user_id", 7).where("title", "Hello world!").build()

        assert query == "SELECT * FROM posts WHERE user_id = $1 AND title = $2"
        assert params == [7, "Hello world!"]

    def test_where_with_different_operators(self):
        builder = QueryBuilder("posts")
        query, params = (
            builder.where("id", ">", 18)
            .where("title", "!=", "draft")
            .where("user_id", "<=", 100)
            .build()
        )

        assert query == "SELECT * FROM posts WHERE id > $1 AND title != $2 AND user_id <= $3"
        assert params == [18, "draft", 100]

    def test_where_none_uses_is_null(self):
        builder = QueryBuilder("posts")
        query, params = builder.where("user_id", None).where("id", "!=", None).build()

        assert query == "SELECT * FROM posts WHERE user_id IS NULL AND id IS NOT NULL"
        assert params == []

    def test_or_where(self):
        builder = QueryBuilder("posts")
        query, params = (
            builder.where("user_id", 1).where("id", ">", 3).or_where("user_id", 2).build()
        )

        assert query == "SELECT * FROM posts WHERE (user_id = $1 AND id > $2) OR user_id = $3"
        assert params == [1, 3, 2]

    def test_where_rejects_wrong_arity(self):
        with pytest.raises(TypeError):
            QueryBuilder("posts").where("id")
        with pytest.raises(TypeError):
            QueryBuilder("posts").or_where("id", "=", 1, 2)

    def test_builder_is_immutable(self):
        base = QueryBuilder("posts").where("user_id", 1)
        base.where("id", 2)

        assert base.build() == ("SELECT * FROM posts WHERE user_id = $1", [1])


class TestInConditions:
    def test_where_in_multiple_values(self):
        query, params = QueryBuilder("posts").where_in("id", [1, 2, 3]).build()

        assert query == "SELECT * FROM posts WHERE id IN ($1, $2, $3)"
        assert params == [1, 2, 3]

    def test_where_in_single_value(self):
        query, params = QueryBuilder("posts").where_in("id", 5).build()

        assert query == "SELECT * FROM posts WHERE id IN ($1)"
        assert params == [5]

    def test_where_not_in_after_where(self):
        query, params = (
            QueryBuilder("users").where("role", "admin").where_not_in("id", [1, 2]).build()
        )

        assert query == "SELECT * FROM users WHERE role = $1 AND id NOT IN ($2, $3)"
        assert params == ["admin", 1, 2]
