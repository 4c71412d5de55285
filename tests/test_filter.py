import pytest

from quarry.exception import FilterError
from quarry.sql.filter import (
    NEVER,
    FilterCompiler,
    compile_order,
    validate_identifier,
)


def quote(name):
    return f'"{name}"'


@pytest.fixture
def compiler():
    return FilterCompiler(quote)


def test_empty_filter_matches_everything(compiler):
    assert compiler.compile(None).text == ""
    assert compiler.compile({}).text == ""


def test_equality_and_null(compiler):
    query = compiler.compile({"name": "foo", "category": None})

    assert query.text == '("name" = $p0 AND "category" IS NULL)'
    assert query.params == {"p0": "foo"}


def test_operators(compiler):
    query = compiler.compile(
        {"score": {"gte": 10, "lt": 50}, "category": {"not": None}}
    )

    assert query.text == (
        '(("score" >= $p0 AND "score" < $p1) AND "category" IS NOT NULL)'
    )
    assert query.params == {"p0": 10, "p1": 50}


def test_patterns(compiler):
    query = compiler.compile(
        {
            "name": {"contains": "am"},
            "category": {"starts_with": "to"},
        }
    )

    assert query.text == '("name" LIKE $p0 AND "category" LIKE $p1)'
    assert query.params == {"p0": "%am%", "p1": "to%"}


def test_in_and_not_in(compiler):
    query = compiler.compile({"id": {"in": [1, 2]}, "name": {"not_in": ["x"]}})

    assert query.text == '("id" IN ($p0, $p1) AND "name" NOT IN ($p2))'
    assert query.params == {"p0": 1, "p1": 2, "p2": "x"}


def test_empty_in_matches_nothing(compiler):
    assert compiler.compile({"id": {"in": []}}).text == NEVER


def test_empty_not_in_matches_everything(compiler):
    assert compiler.compile({"id": {"not_in": []}}).text == ""


def test_combinators(compiler):
    query = compiler.compile(
        {
            "OR": [{"name": "a"}, {"name": "b"}],
            "NOT": {"category": "toys"},
        }
    )

    assert query.text == (
        '(("name" = $p0 OR "name" = $p1) AND NOT "category" = $p2)'
    )


def test_and_skips_empty_clauses(compiler):
    query = compiler.compile({"AND": [{}, {"id": {"not_in": []}}, {"id": 3}]})

    assert query.text == '"id" = $p0'


def test_or_edge_cases(compiler):
    assert compiler.compile({"OR": []}).text == NEVER
    assert compiler.compile({"OR": [{"id": 1}, {}]}).text == ""


def test_not_of_everything_matches_nothing(compiler):
    assert compiler.compile({"NOT": {}}).text == NEVER


@pytest.mark.parametrize(
    "where",
    (
        {"score": {"between": [1, 2]}},
        {"id": {"in": "12"}},
        {"OR": "nope"},
        ["id", 1],
    ),
)
def test_invalid_filters(compiler, where):
    with pytest.raises(FilterError):
        compiler.compile(where)


@pytest.mark.parametrize(
    "identifier", ("items", "public.items", "_private", "col_2")
)
def test_valid_identifiers(identifier):
    assert validate_identifier(identifier) == identifier


@pytest.mark.parametrize(
    "identifier", ("1abc", "items; DROP TABLE items", 'a"b', "", "a..b")
)
def test_invalid_identifiers(identifier):
    with pytest.raises(FilterError):
        validate_identifier(identifier)


def test_order_by():
    assert compile_order(None, quote) == ""
    assert compile_order("name", quote) == ' ORDER BY "name" ASC'
    assert compile_order({"score": "desc"}, quote) == (
        ' ORDER BY "score" DESC'
    )
    assert compile_order([{"score": "desc"}, {"id": "asc"}], quote) == (
        ' ORDER BY "score" DESC, "id" ASC'
    )


def test_order_by_invalid_direction():
    with pytest.raises(FilterError):
        compile_order({"score": "sideways"}, quote)
