"""
Tests for schema validation.
"""
import pytest

from fulfillment_mcp.errors import ConfigurationError, ErrorCode, ErrorKind, ValidationError
from fulfillment_mcp.tools import schemas
from fulfillment_mcp.validation import Validator, schema_key, strip_required


SIMPLE_SCHEMA = {
    "type": "object",
    "properties": {
        "orderId": {"type": "string", "minLength": 1},
        "quantity": {"type": "integer", "minimum": 1},
    },
    "required": ["orderId"],
    "additionalProperties": False,
}


# =============================================================================
# Validate
# =============================================================================


class TestValidate:
    def test_valid_data_is_returned_unchanged(self):
        validator = Validator()
        data = {"orderId": "order_001", "quantity": 2}

        assert validator.validate(data, SIMPLE_SCHEMA) is data

    def test_missing_required_field_names_the_field(self):
        validator = Validator()

        with pytest.raises(ValidationError) as exc_info:
            validator.validate({}, SIMPLE_SCHEMA)

        error = exc_info.value
        assert error.field == "orderId"
        assert error.code == ErrorCode.VALIDATION_ERROR
        assert error.kind == ErrorKind.PROTOCOL
        assert "orderId" in error.reason

    def test_wrong_type_reports_path(self):
        validator = Validator()

        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"orderId": "o1", "quantity": "two"}, SIMPLE_SCHEMA)

        assert exc_info.value.field == "quantity"

    def test_nested_path_is_dotted(self):
        validator = Validator()
        data = {"items": [{"sku": "WID-001", "quantity": 0}]}

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(data, schemas.RESERVE_INVENTORY_SCHEMA)

        assert exc_info.value.field == "items.0.quantity"

    def test_unknown_property_rejected(self):
        validator = Validator()

        with pytest.raises(ValidationError):
            validator.validate({"orderId": "o1", "extra": True}, SIMPLE_SCHEMA)

    @pytest.mark.parametrize("value", ["not-a-date", "2024-01-01", "2024-01-01T25:00:00Z"])
    def test_date_time_format_enforced(self, value):
        validator = Validator()

        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"createdAtMin": value}, schemas.GET_ORDERS_SCHEMA)

        assert exc_info.value.field == "createdAtMin"

    def test_valid_date_time_accepted(self):
        validator = Validator()
        data = {"createdAtMin": "2024-01-01T00:00:00Z", "createdAtMax": "2024-02-01T12:30:00+02:00"}

        assert validator.validate(data, schemas.GET_ORDERS_SCHEMA) is data

    def test_invalid_schema_is_configuration_error(self):
        validator = Validator()

        with pytest.raises(ConfigurationError):
            validator.validate({}, {"type": "not-a-type"})


# =============================================================================
# Caching
# =============================================================================


class TestCompiledCache:
    def test_same_schema_compiled_once(self):
        validator = Validator()

        first = validator.compile(SIMPLE_SCHEMA)
        second = validator.compile(dict(SIMPLE_SCHEMA))

        assert first is second
        assert validator.cache_info() == {"size": 1}

    def test_key_ignores_property_order(self):
        reordered = {
            "additionalProperties": False,
            "required": ["orderId"],
            "properties": SIMPLE_SCHEMA["properties"],
            "type": "object",
        }
        assert schema_key(reordered) == schema_key(SIMPLE_SCHEMA)

    def test_clear_cache(self):
        validator = Validator()
        validator.compile(SIMPLE_SCHEMA)
        validator.compile(schemas.CANCEL_ORDER_SCHEMA)
        assert validator.cache_info()["size"] == 2

        validator.clear_cache()

        assert validator.cache_info()["size"] == 0


# =============================================================================
# Partial Validation
# =============================================================================


class TestPartialValidation:
    def test_required_fields_become_optional(self):
        validator = Validator()

        assert validator.validate_partial({"quantity": 3}, SIMPLE_SCHEMA) == {"quantity": 3}

    def test_types_still_enforced(self):
        validator = Validator()

        with pytest.raises(ValidationError):
            validator.validate_partial({"quantity": "three"}, SIMPLE_SCHEMA)

    def test_strip_required_is_recursive(self):
        stripped = strip_required(schemas.ORDER_FIELDS)

        assert "required" not in stripped
        assert "required" not in stripped["properties"]["lineItems"]["items"]
        # Original left intact
        assert schemas.ORDER_FIELDS["required"] == ["lineItems"]

    def test_update_schema_accepts_partial_order(self):
        validator = Validator()
        args = {"id": "order_001", "updates": {"notes": "Leave at the door"}}

        assert validator.validate(args, schemas.UPDATE_ORDER_SCHEMA) == args

    def test_update_schema_rejects_empty_updates(self):
        validator = Validator()

        with pytest.raises(ValidationError):
            validator.validate({"id": "order_001", "updates": {}}, schemas.UPDATE_ORDER_SCHEMA)
