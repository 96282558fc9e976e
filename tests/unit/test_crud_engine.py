"""Tests for the dynamic CRUD engine."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from ahoi import Ahoi
from ahoi.auth.principal import Principal
from ahoi.core.types import AccessPolicy
from ahoi.data.engine import CrudEngine, StructureCache
from ahoi.exceptions import (
    Forbidden,
    NoUpdatableFields,
    RecordNotFound,
    StructureNotFound,
    Unauthenticated,
    ValidationError,
)


class TestCreateAndRead:
    def test_create_stamps_base_columns(self, ahoi: Ahoi, movies, alice: Principal):
        record = ahoi.crud.create("movies", alice, {"title": "Inception", "year": 2010})
        assert record["id"] == 1
        assert record["owner_id"] == alice.id
        assert record["title"] == "Inception"
        assert record["year"] == 2010
        assert record["created_at"] == record["updated_at"]
        datetime.fromisoformat(record["created_at"])

    def test_client_cannot_set_base_columns(self, ahoi: Ahoi, movies, alice: Principal):
        record = ahoi.crud.create(
            "movies",
            alice,
            {"title": "Heat", "id": 500, "owner_id": 77, "created_at": "2000-01-01", "updated_at": "2000-01-01"},
        )
        assert record["id"] == 1
        assert record["owner_id"] == alice.id
        assert not record["created_at"].startswith("2000")

    def test_create_then_get_round_trip(self, ahoi: Ahoi, movies, alice: Principal):
        created = ahoi.crud.create("movies", alice, {"title": "Alien", "year": "1979"})
        assert ahoi.crud.get("movies", alice, created["id"]) == created

    def test_missing_required_field(self, ahoi: Ahoi, movies, alice: Principal):
        with pytest.raises(ValidationError) as exc_info:
            ahoi.crud.create("movies", alice, {})
        assert exc_info.value.code == "missing_required_field"
        assert ahoi.crud.list("movies", alice) == []

    def test_anonymous_create(self, ahoi: Ahoi, movies):
        with pytest.raises(Unauthenticated):
            ahoi.crud.create("movies", None, {"title": "Alien"})

    def test_unknown_structure(self, ahoi: Ahoi, alice: Principal):
        with pytest.raises(StructureNotFound):
            ahoi.crud.list("films", alice)

    def test_get_missing(self, ahoi: Ahoi, movies, alice: Principal):
        with pytest.raises(RecordNotFound) as exc_info:
            ahoi.crud.get("movies", alice, 42)
        assert exc_info.value.message == "Item not found."

    def test_all_types_round_trip(self, ahoi: Ahoi, alice: Principal):
        ahoi.create_structure(
            "Everything",
            "everything",
            fields=[
                {"name": "Short", "slug": "short", "type": "TEXT_SHORT"},
                {"name": "Long", "slug": "long", "type": "TEXT_LONG"},
                {"name": "Int", "slug": "count", "type": "NUMBER_INT"},
                {"name": "Price", "slug": "price", "type": "NUMBER_DECIMAL"},
                {"name": "Flag", "slug": "flag", "type": "BOOLEAN"},
                {"name": "When", "slug": "happened_at", "type": "DATETIME"},
                {"name": "Day", "slug": "day", "type": "DATE"},
                {"name": "Ref", "slug": "ref", "type": "RELATIONSHIP"},
                {"name": "Meta", "slug": "meta", "type": "JSON"},
            ],
        )
        record = ahoi.crud.create(
            "everything",
            alice,
            {
                "short": "hi",
                "long": "a\nb",
                "count": "3",
                "price": "9.999",
                "flag": "on",
                "happened_at": "2024-05-01T08:30:00",
                "day": "2024-05-01",
                "ref": 7,
                "meta": {"tags": ["a", "b"]},
            },
        )
        assert record["short"] == "hi"
        assert record["long"] == "a\nb"
        assert record["count"] == 3
        assert record["price"] == 10.0
        assert record["flag"] is True
        assert record["happened_at"] == "2024-05-01T08:30:00"
        assert record["day"] == "2024-05-01"
        assert record["ref"] == 7
        assert record["meta"] == {"tags": ["a", "b"]}


class TestOwnershipScope:
    """Other owners' rows are invisible and behave as missing."""

    @pytest.fixture
    def alien(self, ahoi: Ahoi, movies, alice: Principal) -> dict:
        return ahoi.crud.create("movies", alice, {"title": "Alien"})

    def test_list_only_own_rows(self, ahoi: Ahoi, alien, alice: Principal, bob: Principal):
        ahoi.crud.create("movies", bob, {"title": "Heat"})
        assert [r["title"] for r in ahoi.crud.list("movies", alice)] == ["Alien"]
        assert [r["title"] for r in ahoi.crud.list("movies", bob)] == ["Heat"]

    def test_get_other_owner(self, ahoi: Ahoi, alien, bob: Principal):
        with pytest.raises(RecordNotFound):
            ahoi.crud.get("movies", bob, alien["id"])

    def test_update_other_owner(self, ahoi: Ahoi, alien, alice: Principal, bob: Principal):
        with pytest.raises(RecordNotFound):
            ahoi.crud.update("movies", bob, alien["id"], {"title": "Mine"})
        assert ahoi.crud.get("movies", alice, alien["id"])["title"] == "Alien"

    def test_delete_other_owner(self, ahoi: Ahoi, alien, alice: Principal, bob: Principal):
        with pytest.raises(RecordNotFound):
            ahoi.crud.delete("movies", bob, alien["id"])
        assert ahoi.crud.get("movies", alice, alien["id"])


class TestUpdateAndDelete:
    def test_partial_update(self, ahoi: Ahoi, movies, alice: Principal):
        clock = iter([datetime(2024, 1, 1), datetime(2024, 1, 2)])
        ahoi.crud._clock = lambda: next(clock)
        created = ahoi.crud.create("movies", alice, {"title": "Alien", "year": 1979})
        updated = ahoi.crud.update("movies", alice, created["id"], {"year": 1980, "owner_id": 2})
        assert updated["title"] == "Alien"
        assert updated["year"] == 1980
        assert updated["owner_id"] == alice.id
        assert updated["created_at"] == "2024-01-01T00:00:00"
        assert updated["updated_at"] == "2024-01-02T00:00:00"

    def test_update_without_declared_keys(self, ahoi: Ahoi, movies, alice: Principal):
        created = ahoi.crud.create("movies", alice, {"title": "Alien"})
        with pytest.raises(NoUpdatableFields) as exc_info:
            ahoi.crud.update("movies", alice, created["id"], {"rating": 5, "id": 9})
        assert exc_info.value.status == 400
        assert ahoi.crud.get("movies", alice, created["id"]) == created

    def test_update_missing_record(self, ahoi: Ahoi, movies, alice: Principal):
        with pytest.raises(RecordNotFound):
            ahoi.crud.update("movies", alice, 99, {"title": "x"})

    def test_delete_returns_snapshot(self, ahoi: Ahoi, movies, alice: Principal):
        created = ahoi.crud.create("movies", alice, {"title": "Alien"})
        snapshot = ahoi.crud.delete("movies", alice, created["id"])
        assert snapshot == created
        with pytest.raises(RecordNotFound):
            ahoi.crud.get("movies", alice, created["id"])

    def test_delete_twice(self, ahoi: Ahoi, movies, alice: Principal):
        created = ahoi.crud.create("movies", alice, {"title": "Alien"})
        ahoi.crud.delete("movies", alice, created["id"])
        with pytest.raises(RecordNotFound):
            ahoi.crud.delete("movies", alice, created["id"])

    def test_deleted_structure_routes_fail(self, ahoi: Ahoi, movies, alice: Principal):
        ahoi.crud.create("movies", alice, {"title": "Alien"})
        ahoi.schema.delete_structure("movies")
        with pytest.raises(StructureNotFound):
            ahoi.crud.list("movies", alice)


class TestListQuery:
    @pytest.fixture
    def catalogue(self, ahoi: Ahoi, movies, alice: Principal) -> None:
        for title, year in [("Alien", 1979), ("Aliens", 1986), ("Heat", 1995), ("Ronin", 1998), ("Se7en", 1995)]:
            ahoi.crud.create("movies", alice, {"title": title, "year": year})

    def test_default_order_is_id_ascending(self, ahoi: Ahoi, catalogue, alice: Principal):
        assert [r["id"] for r in ahoi.crud.list("movies", alice)] == [1, 2, 3, 4, 5]

    def test_equality_filter_is_coerced(self, ahoi: Ahoi, catalogue, alice: Principal):
        records = ahoi.crud.list("movies", alice, {"year": "1995"})
        assert [r["title"] for r in records] == ["Heat", "Se7en"]

    def test_unknown_filters_ignored(self, ahoi: Ahoi, catalogue, alice: Principal):
        assert len(ahoi.crud.list("movies", alice, {"rating": "5"})) == 5

    def test_invalid_filter_value(self, ahoi: Ahoi, catalogue, alice: Principal):
        with pytest.raises(ValidationError):
            ahoi.crud.list("movies", alice, {"year": "recent"})

    def test_sort_and_order(self, ahoi: Ahoi, catalogue, alice: Principal):
        records = ahoi.crud.list("movies", alice, {"_sort": "year", "_order": "desc", "_limit": "2"})
        assert [r["title"] for r in records] == ["Ronin", "Heat"]

    def test_unknown_sort_falls_back_to_id(self, ahoi: Ahoi, catalogue, alice: Principal):
        records = ahoi.crud.list("movies", alice, {"_sort": "title; DROP TABLE x", "_order": "desc"})
        assert [r["id"] for r in records] == [5, 4, 3, 2, 1]

    def test_pagination(self, ahoi: Ahoi, catalogue, alice: Principal):
        page = ahoi.crud.list("movies", alice, {"_limit": "2", "_page": "3"})
        assert [r["id"] for r in page] == [5]

    def test_parse_list_query_defaults_and_caps(self, ahoi: Ahoi):
        query = ahoi.crud.parse_list_query({"_limit": "-3", "_page": "0", "_order": "sideways"})
        assert (query.limit, query.page, query.order, query.sort) == (20, 1, "asc", "id")
        assert ahoi.crud.parse_list_query({"_limit": "5000"}).limit == 100
        assert ahoi.crud.parse_list_query({"_limit": "2", "_page": "3"}).offset == 4

    def test_limit_above_maximum_page_size_is_capped(self, ahoi: Ahoi, catalogue, alice: Principal):
        ahoi.crud._max_page_size = 3
        assert len(ahoi.crud.list("movies", alice, {"_limit": "200"})) == 3

    def test_huge_page_is_empty(self, ahoi: Ahoi, catalogue, alice: Principal):
        huge = str(10**23)
        query = ahoi.crud.parse_list_query({"_limit": "20", "_page": huge})
        assert query.offset <= 2**63 - 1
        assert ahoi.crud.list("movies", alice, {"_page": huge}) == []


class TestOutOfRangeIds:
    @pytest.mark.parametrize("record_id", [10**23, 2**63, 0, -1])
    def test_get(self, ahoi: Ahoi, movies, alice: Principal, record_id: int):
        with pytest.raises(RecordNotFound):
            ahoi.crud.get("movies", alice, record_id)

    def test_update(self, ahoi: Ahoi, movies, alice: Principal):
        with pytest.raises(RecordNotFound):
            ahoi.crud.update("movies", alice, 10**23, {"title": "Alien"})

    def test_delete(self, ahoi: Ahoi, movies, alice: Principal):
        with pytest.raises(RecordNotFound):
            ahoi.crud.delete("movies", alice, 10**23)


class TestCapabilityPolicy:
    def test_shared_rows(self, ahoi: Ahoi, movies, alice: Principal, bob: Principal):
        ahoi.evaluator.set_policy("movies", AccessPolicy.CAPABILITY)
        with pytest.raises(Forbidden):
            ahoi.crud.create("movies", alice, {"title": "Alien"})

        creator = Principal(id=alice.id, capabilities=frozenset({"create_movies"}))
        created = ahoi.crud.create("movies", creator, {"title": "Alien"})
        assert ahoi.crud.get("movies", bob, created["id"])["title"] == "Alien"
        with pytest.raises(Forbidden):
            ahoi.crud.delete("movies", bob, created["id"])


class TestStructureCache:
    def test_structure_loaded_once_per_request(self, ahoi: Ahoi, movies, alice: Principal):
        cache = StructureCache()
        calls = []
        original = ahoi.schema.get_structure

        def counting(slug):
            calls.append(slug)
            return original(slug)

        ahoi.schema.get_structure = counting
        ahoi.crud.list("movies", alice, cache=cache)
        ahoi.crud.list("movies", alice, cache=cache)
        assert calls == ["movies"]


class TestEvents:
    def test_create_fires_item_created(self, ahoi: Ahoi, movies, alice: Principal):
        dispatcher = MagicMock()
        engine = CrudEngine(ahoi.schema, ahoi.evaluator, dispatcher)
        record = engine.create("movies", alice, {"title": "Alien"})
        dispatcher.fire.assert_called_once_with("item.created", "movies", record)

    def test_delete_fires_with_snapshot(self, ahoi: Ahoi, movies, alice: Principal):
        dispatcher = MagicMock()
        engine = CrudEngine(ahoi.schema, ahoi.evaluator, dispatcher)
        record = engine.create("movies", alice, {"title": "Alien"})
        engine.delete("movies", alice, record["id"])
        dispatcher.fire.assert_called_with("item.deleted", "movies", record)
