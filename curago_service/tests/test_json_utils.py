"""Tests for structured-output parsing of model responses."""
import json

import pytest

from curago_service.json_utils import (
    ParseError,
    _repair_truncated_json,
    coerce_string_list,
    parse_structured_output,
)


class TestRepairTruncatedJson:
    """Test repair of truncated JSON."""

    def test_already_valid(self):
        """Test that valid JSON is left alone."""
        assert json.loads(_repair_truncated_json('["a", "b"]')) == ["a", "b"]

    def test_truncated_array(self):
        """Test closing a truncated array."""
        assert json.loads(_repair_truncated_json('["Cardiologist", "Pulmo')) == [
            "Cardiologist", "Pulmo",
        ]

    def test_truncated_object(self):
        """Test closing a truncated object."""
        parsed = json.loads(_repair_truncated_json('{"urgencyLevel": "moderate", "possibleConditions": ["Flu"'))
        assert parsed["possibleConditions"] == ["Flu"]

    def test_trailing_comma_removed(self):
        """Test that a dangling comma is dropped."""
        assert json.loads(_repair_truncated_json('["a", "b",')) == ["a", "b"]


class TestParseStructuredOutput:
    """Test the parse_structured_output function."""

    def test_direct_array(self):
        """Test a bare JSON array."""
        assert parse_structured_output('  ["Neurologist"]  ') == ["Neurologist"]

    def test_fenced_block(self):
        """Test a json-tagged fenced block."""
        text = 'Here you go:\n```json\n["Cardiologist", "General Physician"]\n```'
        assert parse_structured_output(text) == ["Cardiologist", "General Physician"]

    def test_fenced_block_without_tag(self):
        """Test an untagged fenced block."""
        text = '```\n{"urgencyLevel": "urgent"}\n```'
        assert parse_structured_output(text, expected=dict) == {"urgencyLevel": "urgent"}

    def test_bracket_span_in_prose(self):
        """Test an array embedded in prose."""
        text = 'The best choices are ["Dermatologist"] for this rash.'
        assert parse_structured_output(text) == ["Dermatologist"]

    def test_object_span_in_prose(self):
        """Test an object embedded in prose."""
        text = 'Analysis: {"possibleConditions": ["Migraine"], "urgencyLevel": "moderate"} Hope this helps.'
        parsed = parse_structured_output(text, expected=dict)
        assert parsed["urgencyLevel"] == "moderate"

    def test_truncated_span_repaired(self):
        """Test that a truncated span is repaired."""
        text = 'Sure! ["ENT Specialist", "General Phys'
        assert parse_structured_output(text) == ["ENT Specialist", "General Phys"]

    def test_wrong_shape_raises(self):
        """Test that an object where a list is expected raises."""
        with pytest.raises(ParseError):
            parse_structured_output('{"a": 1}', expected=list)

    def test_prose_only_raises(self):
        """Test that prose without JSON raises."""
        with pytest.raises(ParseError):
            parse_structured_output("You should see a Cardiologist.")

    def test_empty_raises(self):
        """Test that empty text raises."""
        with pytest.raises(ParseError):
            parse_structured_output("   ")

    def test_unsupported_shape(self):
        """Test that an unsupported expected type raises."""
        with pytest.raises(TypeError):
            parse_structured_output("[]", expected=str)


class TestCoerceStringList:
    """Test the coerce_string_list function."""

    def test_filters_and_dedupes(self):
        """Test that blanks, non-strings and duplicates are dropped."""
        value = ["Cardiologist", " cardiologist ", "", 3, None, "Neurologist"]
        assert coerce_string_list(value) == ["Cardiologist", "Neurologist"]

    def test_limit(self):
        """Test the length limit."""
        assert coerce_string_list(["a", "b", "c", "d"], limit=3) == ["a", "b", "c"]

    def test_non_list(self):
        """Test that non-list values give an empty list."""
        assert coerce_string_list({"a": 1}) == []
        assert coerce_string_list(None) == []
