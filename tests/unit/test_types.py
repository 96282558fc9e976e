"""Tests for core types."""

from datetime import datetime

from ahoi.core.types import (
    AccessPolicy,
    FieldSpec,
    FieldType,
    ListQuery,
    StructureInfo,
    SubscriptionInfo,
    SubscriptionStatus,
)


class TestFieldType:
    """Tests for FieldType enum."""

    def test_all_types_exist(self):
        """All declarable field types should exist."""
        assert FieldType.values() == [
            "TEXT_SHORT",
            "TEXT_LONG",
            "NUMBER_INT",
            "NUMBER_DECIMAL",
            "BOOLEAN",
            "DATETIME",
            "DATE",
            "RELATIONSHIP",
            "JSON",
        ]

    def test_from_string(self):
        assert FieldType("NUMBER_INT") == FieldType.NUMBER_INT
        assert FieldType.BOOLEAN == "BOOLEAN"


class TestFieldSpec:
    """Tests for FieldSpec model."""

    def test_minimal_spec(self):
        """Only name and slug are needed."""
        spec = FieldSpec(name="Title", slug="title")
        assert spec.type == "TEXT_SHORT"
        assert spec.is_required is False
        assert spec.default_value is None

    def test_unknown_type_is_accepted_by_the_model(self):
        """Type names are checked by the schema manager, not the model."""
        assert FieldSpec(name="X", slug="x", type="VECTOR").type == "VECTOR"


class TestListQuery:
    def test_defaults(self):
        query = ListQuery()
        assert query.sort == "id"
        assert query.order == "asc"
        assert query.offset == 0

    def test_offset(self):
        assert ListQuery(limit=20, page=3).offset == 40


class TestOutputModels:
    def test_structure_info_dumps_to_json(self):
        info = StructureInfo(
            id=1, name="Movies", slug="movies", table_name="ahoi_data_movies", created_at=datetime(2024, 1, 2)
        )
        data = info.model_dump(mode="json")
        assert data["fields"] == []
        assert data["record_count"] is None
        assert data["created_at"] == "2024-01-02T00:00:00"

    def test_subscription_status_serializes_as_string(self):
        info = SubscriptionInfo(
            id=1, target_url="https://h.example.com", event_name="item.created", status=SubscriptionStatus.ACTIVE
        )
        assert info.model_dump(mode="json")["status"] == "active"

    def test_access_policy_values(self):
        assert AccessPolicy("ownership") is AccessPolicy.OWNERSHIP
        assert AccessPolicy("capability") is AccessPolicy.CAPABILITY
