"""Tests for record input validation."""

from dataclasses import dataclass

import pytest

from ahoi.core.types import ValidationMode
from ahoi.data.validator import FieldValidator
from ahoi.exceptions import MissingRequiredField, ValidationError


@dataclass
class FakeField:
    name: str
    slug: str
    type: str
    is_required: bool = False


@pytest.fixture
def validator() -> FieldValidator:
    return FieldValidator(
        [
            FakeField("Title", "title", "TEXT_SHORT", is_required=True),
            FakeField("Year", "year", "NUMBER_INT"),
            FakeField("Seen", "seen", "BOOLEAN"),
        ]
    )


class TestFieldValidator:
    """Tests for FieldValidator."""

    def test_create_coerces_values(self, validator: FieldValidator):
        assert validator.validate({"title": " Alien ", "year": "1979", "seen": "yes"}) == {
            "title": "Alien",
            "year": 1979,
            "seen": True,
        }

    def test_missing_required_on_create(self, validator: FieldValidator):
        with pytest.raises(MissingRequiredField) as exc_info:
            validator.validate({"year": 1979}, ValidationMode.CREATE)
        assert exc_info.value.code == "missing_required_field"
        assert "Title" in exc_info.value.message

    def test_update_allows_partial_input(self, validator: FieldValidator):
        assert validator.validate({"year": 1980}, ValidationMode.UPDATE) == {"year": 1980}

    def test_unknown_and_base_columns_are_dropped(self, validator: FieldValidator):
        result = validator.validate(
            {"title": "Alien", "id": 5, "owner_id": 7, "created_at": "x", "updated_at": "y", "rating": 9}
        )
        assert result == {"title": "Alien"}

    def test_null_for_required_field_rejected(self, validator: FieldValidator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"title": None})
        assert "title" in exc_info.value.field_errors

    def test_null_for_optional_field_kept(self, validator: FieldValidator):
        assert validator.validate({"title": "Alien", "year": None}) == {"title": "Alien", "year": None}

    def test_errors_are_collected_per_field(self, validator: FieldValidator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"title": "Alien", "year": "soon", "seen": "perhaps"})
        assert set(exc_info.value.field_errors) == {"year", "seen"}

    @pytest.mark.parametrize("body", [[], "title", 42, None])
    def test_body_must_be_an_object(self, validator: FieldValidator, body):
        with pytest.raises(ValidationError):
            validator.validate(body, ValidationMode.UPDATE)
