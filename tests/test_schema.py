"""
Tests for provider record structure checks.
"""

from provcheck.schema import validate_provider_record


class TestValidateProviderRecord:
    """Test structural validation of incoming provider rows."""

    def test_valid_record(self):
        errors = validate_provider_record(
            {"npi": "1234567890", "first_name": "Mary", "last_name": "Johnson", "city": "Boston"}
        )
        assert errors == []

    def test_missing_required_fields(self):
        errors = validate_provider_record({"npi": "1234567890"})
        assert "Missing required field: first_name" in errors
        assert "Missing required field: last_name" in errors

    def test_blank_required_field(self):
        errors = validate_provider_record({"npi": "1234567890", "first_name": "  ", "last_name": "J"})
        assert errors == ["Field 'first_name' must be a non-empty string"]

    def test_npi_must_be_ten_digits(self):
        for npi in ("12345", "12345678901", "12345abcde"):
            errors = validate_provider_record({"npi": npi, "first_name": "A", "last_name": "B"})
            assert errors == ["Field 'npi' must be a 10-digit number"]

    def test_optional_fields_must_be_strings(self):
        errors = validate_provider_record(
            {"npi": "1234567890", "first_name": "A", "last_name": "B", "zip_code": 2108}
        )
        assert errors == ["Field 'zip_code' must be a string if provided"]

    def test_optional_none_is_fine(self):
        errors = validate_provider_record(
            {"npi": "1234567890", "first_name": "A", "last_name": "B", "email": None}
        )
        assert errors == []

    def test_field_quality_is_not_checked(self):
        """A fake phone or odd state is scored later, not rejected here."""
        errors = validate_provider_record(
            {
                "npi": "1234567890",
                "first_name": "A",
                "last_name": "B",
                "phone": "555-000-0000",
                "state": "Massachusetts",
                "zip_code": "00000",
            }
        )
        assert errors == []
