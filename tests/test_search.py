"""Tests for search predicates and the where-clause builder."""

import uuid

import pytest

from emr_records.search import (
    ConfigurationError,
    SearchModifier,
    StringSearchField,
    TokenSearchField,
    WhereClauseBuilder,
)


@pytest.fixture
def builder():
    """Get a where-clause builder."""
    return WhereClauseBuilder()


class TestEmptyInput:
    """Tests for searches with nothing to filter on."""

    def test_empty_mapping(self, builder):
        """Test that an empty mapping builds an empty fragment."""
        clause = builder.build({})
        assert clause.fragment == ""
        assert clause.bound_values == []

    def test_none(self, builder):
        """Test that None is treated as an empty search."""
        assert builder.build(None).fragment == ""

    def test_predicates_without_values(self, builder):
        """Test that a predicate with no values adds no condition."""
        clause = builder.build({"lname": StringSearchField("lname", [])})
        assert clause.fragment == ""


class TestStringFields:
    """Tests for string predicates and their modifiers."""

    def test_contains_wraps_value(self, builder):
        """Test that a contains match binds the value wrapped in wildcards."""
        clause = builder.build({"lname": StringSearchField("lname", "Smith", SearchModifier.CONTAINS)})
        assert clause.fragment == "WHERE lname LIKE ?"
        assert clause.bound_values == ["%Smith%"]

    def test_prefix(self, builder):
        """Test that a prefix match binds a trailing wildcard."""
        clause = builder.build({"fname": StringSearchField("fname", "Jo", SearchModifier.PREFIX)})
        assert clause.fragment == "WHERE fname LIKE ?"
        assert clause.bound_values == ["Jo%"]

    def test_exact(self, builder):
        """Test that an exact match uses equality."""
        clause = builder.build({"city": StringSearchField("city", "Boston", SearchModifier.EXACT)})
        assert clause.fragment == "WHERE city = ?"
        assert clause.bound_values == ["Boston"]

    def test_multiple_values_are_ored(self, builder):
        """Test that several values for one field are OR-ed in parentheses."""
        clause = builder.build({"lname": StringSearchField("lname", ["Smith", "Jones"])})
        assert clause.fragment == "WHERE (lname LIKE ? OR lname LIKE ?)"
        assert clause.bound_values == ["%Smith%", "%Jones%"]

    def test_unknown_modifier_raises(self, builder):
        """Test that an unknown modifier raises ConfigurationError."""
        predicate = StringSearchField("lname", "Smith", modifier="soundex")
        with pytest.raises(ConfigurationError):
            builder.build({"lname": predicate})


class TestTokenFields:
    """Tests for token predicates."""

    def test_single_value_equality(self, builder):
        """Test that a single token value uses equality."""
        clause = builder.build({"pid": TokenSearchField("pid", [5])})
        assert clause.fragment == "WHERE pid = ?"
        assert clause.bound_values == [5]

    def test_multiple_values_in_list(self, builder):
        """Test that several token values use IN."""
        clause = builder.build({"pid": TokenSearchField("pid", [1, 2, 3])})
        assert clause.fragment == "WHERE pid IN (?,?,?)"
        assert clause.bound_values == [1, 2, 3]

    def test_uuid_values_are_bound_as_bytes(self, builder):
        """Test that uuid tokens are bound in their 16-byte form."""
        value = uuid.uuid4()
        clause = builder.build({"uuid": TokenSearchField("uuid", [str(value)], is_uuid=True)})
        assert clause.fragment == "WHERE uuid = ?"
        assert clause.bound_values == [value.bytes]

    def test_malformed_uuid_raises(self, builder):
        """Test that a malformed uuid token raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            builder.build({"uuid": TokenSearchField("uuid", ["not-a-uuid"], is_uuid=True)})


class TestCombination:
    """Tests for combining several predicates."""

    def test_and_mode(self, builder):
        """Test that predicates are AND-ed by default."""
        clause = builder.build({
            "fname": StringSearchField("fname", "Jane"),
            "lname": StringSearchField("lname", "Smith"),
        })
        assert clause.fragment == "WHERE fname LIKE ? AND lname LIKE ?"
        assert clause.bound_values == ["%Jane%", "%Smith%"]

    def test_or_mode(self, builder):
        """Test that optional predicates are OR-ed in OR mode."""
        clause = builder.build({
            "fname": StringSearchField("fname", "Jane", is_and=False),
            "lname": StringSearchField("lname", "Smith", is_and=False),
        }, is_and_condition=False)
        assert clause.fragment == "WHERE fname LIKE ? OR lname LIKE ?"

    def test_or_mode_keeps_mandatory_predicates(self, builder):
        """Test that mandatory predicates stay AND-ed in OR mode."""
        value = str(uuid.uuid4())
        clause = builder.build({
            "uuid": TokenSearchField("uuid", [value], is_uuid=True),
            "fname": StringSearchField("fname", "Jane", is_and=False),
            "lname": StringSearchField("lname", "Smith", is_and=False),
        }, is_and_condition=False)
        assert clause.fragment == "WHERE uuid = ? AND (fname LIKE ? OR lname LIKE ?)"
        assert clause.bound_values == [uuid.UUID(value).bytes, "%Jane%", "%Smith%"]

    def test_bound_values_follow_placeholder_order(self, builder):
        """Test that bound values line up with their placeholders."""
        clause = builder.build({
            "pid": TokenSearchField("pid", [1, 2]),
            "city": StringSearchField("city", "Spring", SearchModifier.PREFIX),
        })
        assert clause.fragment == "WHERE pid IN (?,?) AND city LIKE ?"
        assert clause.bound_values == [1, 2, "Spring%"]

    def test_repeated_field_as_list(self, builder):
        """Test that a list of predicates for one field is flattened."""
        clause = builder.build({
            "lname": [
                StringSearchField("lname", "Sm", SearchModifier.PREFIX),
                StringSearchField("lname", "th"),
            ]
        })
        assert clause.fragment == "WHERE lname LIKE ? AND lname LIKE ?"
        assert clause.bound_values == ["Sm%", "%th%"]


class TestConfigurationErrors:
    """Tests for builder misuse."""

    def test_unsupported_predicate_type(self, builder):
        """Test that a raw value instead of a predicate raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            builder.build({"lname": "Smith"})

    def test_field_name_must_be_identifier(self, builder):
        """Test that a field name that is not an identifier is rejected."""
        with pytest.raises(ConfigurationError):
            builder.build({"x": StringSearchField("lname; DROP TABLE patient_data", "x")})
