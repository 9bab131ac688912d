from __future__ import annotations

import pytest

from tabula.query.provider import Provider
from tabula.shared.exceptions import StatementError, ValueShapeError


def _seed(provider: Provider) -> dict[str, str]:
    # Explicit ids keep "ORDER BY id" deterministic.
    return {
        "ada": provider.insert("users", {"id": "u1", "name": "Ada", "email": "ada@example.com", "age": 36}),
        "grace": provider.insert("users", {"id": "u2", "name": "Grace", "email": "grace@example.com", "age": 45}),
        "linus": provider.insert("users", {"id": "u3", "name": "Linus", "email": "linus@example.com", "age": 28}),
    }


def test_insert_generates_ids(provider: Provider, users_table: str) -> None:
    first = provider.insert("users", {"name": "Ada", "age": 36})
    second = provider.insert("users", {"name": "Grace", "age": 45})
    assert len(first) == 26
    assert first != second
    assert provider.last_query == f"INSERT INTO users (name, age, id) VALUES ('Grace', 45, '{second}')"
    assert provider.count("users") == 2


def test_insert_keeps_supplied_id(provider: Provider, users_table: str) -> None:
    assert provider.insert("users", {"id": "fixed-id", "name": "Ada"}) == "fixed-id"
    assert provider.get("users", where={"id": "fixed-id"})["name"] == "Ada"


def test_insert_rejects_non_scalar_values(provider: Provider, users_table: str, fake_driver) -> None:
    with pytest.raises(ValueShapeError):
        provider.insert("users", {"name": ["Ada"]})
    assert fake_driver.statements == []


def test_select_defaults_to_newest_first(provider: Provider, users_table: str) -> None:
    ids = _seed(provider)
    rows = provider.select("users", columns=["id", "name"])
    assert [row["name"] for row in rows] == ["Linus", "Grace", "Ada"]
    assert rows[0]["id"] == ids["linus"]
    assert provider.last_query == "SELECT id, name FROM users ORDER BY id DESC"
    assert provider.last_total == 3


def test_select_with_limit_records_total(provider: Provider, users_table: str) -> None:
    _seed(provider)
    rows = provider.select("users", columns=["name"], where={"age[>]": 30}, order={"name": "ASC"}, limit=1)
    assert rows == [{"name": "Ada"}]
    assert provider.last_total == 2
    assert provider.last_query == "SELECT COUNT(*) FROM users WHERE age > 30"


def test_select_with_offset(provider: Provider, users_table: str) -> None:
    _seed(provider)
    rows = provider.select("users", columns=["name"], order={"name": "ASC"}, limit=[1, 1])
    assert rows == [{"name": "Grace"}]
    assert provider.last_total == 3


def test_select_or_group_and_like(provider: Provider, users_table: str) -> None:
    _seed(provider)
    rows = provider.select(
        "users",
        columns=["name"],
        where={"OR": {"name[~]": "ra", "age[<]": 30}},
        order={"name": "ASC"},
    )
    assert [row["name"] for row in rows] == ["Grace", "Linus"]


def test_get_returns_first_row_or_none(provider: Provider, users_table: str) -> None:
    _seed(provider)
    row = provider.get("users", columns=["name", "age"], where={"email": "grace@example.com"})
    assert row == {"name": "Grace", "age": 45}
    assert provider.get("users", where={"name": "Nobody"}) is None


def test_count_has_and_sum(provider: Provider, users_table: str) -> None:
    _seed(provider)
    assert provider.count("users") == 3
    assert provider.count("users", {"age[>=]": 36}) == 2
    assert provider.has("users", {"name": "Ada"}) is True
    assert provider.has("users", {"name": "Nobody"}) is False
    assert provider.sum("users", "age") == pytest.approx(109.0)
    assert provider.sum("users", "age", {"name[!]": "Ada"}) == pytest.approx(73.0)


def test_sum_of_empty_table_is_none(provider: Provider, users_table: str) -> None:
    assert provider.sum("users", "age") is None


def test_update_changes_matching_rows(provider: Provider, users_table: str) -> None:
    ids = _seed(provider)
    assert provider.update("users", {"age": 37}, {"id": ids["ada"]}) is True
    assert provider.get("users", ["age"], {"id": ids["ada"]}) == {"age": 37}
    assert provider.get("users", ["age"], {"id": ids["grace"]}) == {"age": 45}


def test_update_escapes_values(provider: Provider, users_table: str) -> None:
    ids = _seed(provider)
    provider.update("users", {"name": "O'Brien"}, {"id": ids["linus"]})
    assert provider.get("users", ["name"], {"id": ids["linus"]}) == {"name": "O'Brien"}


@pytest.mark.parametrize("data, where", [({}, {"id": "x"}), ({"age": 1}, {})])
def test_update_requires_data_and_where(provider: Provider, data: dict, where: dict) -> None:
    with pytest.raises(ValueShapeError):
        provider.update("users", data, where)


def test_delete_and_truncate(provider: Provider, users_table: str) -> None:
    ids = _seed(provider)
    assert provider.delete("users", {"id": ids["ada"]}) is True
    assert provider.count("users") == 2

    with pytest.raises(ValueShapeError):
        provider.delete("users", {})

    assert provider.truncate("users") is True
    assert provider.count("users") == 0


@pytest.mark.parametrize("where", [{"AND": {}}, {"OR": {"AND": {}}}])
def test_writes_refuse_where_that_renders_empty(provider: Provider, users_table: str, where: dict) -> None:
    _seed(provider)
    with pytest.raises(ValueShapeError):
        provider.delete("users", where)
    with pytest.raises(ValueShapeError):
        provider.update("users", {"name": "X"}, where)
    assert provider.count("users") == 3
    assert provider.count("users", {"name": "X"}) == 0


def test_empty_option_list_matches_no_rows(provider: Provider, users_table: str) -> None:
    _seed(provider)
    assert provider.delete("users", {"id": []}) is True
    assert provider.update("users", {"name": "X"}, {"id": []}) is True
    assert provider.count("users") == 3
    assert provider.count("users", {"name": "X"}) == 0
    assert provider.select("users", where={"id": []}) == []
    assert provider.count("users", {"id": []}) == 0


def test_select_treats_empty_group_as_no_filter(provider: Provider, users_table: str) -> None:
    _seed(provider)
    rows = provider.select("users", columns=["id"], where={"AND": {}}, order={"id": "ASC"})
    assert [row["id"] for row in rows] == ["u1", "u2", "u3"]


def test_statement_errors_surface_with_last_error(provider: Provider, users_table: str) -> None:
    with pytest.raises(StatementError):
        provider.select("missing_table")
    assert provider.last_error.startswith("Database error:")
    assert provider.last_query == "SELECT * FROM missing_table ORDER BY id DESC"


def test_tables_and_describe(provider: Provider, users_table: str) -> None:
    assert provider.tables() == ["users"]
    columns = provider.describe("users")
    assert list(columns) == ["id", "name", "email", "age", "created_at", "updated_at"]
    assert columns["email"].index.value == "unique"
    assert columns["name"].length == 64
