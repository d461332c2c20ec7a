"""Tests for spine_orm.attributes module."""

import pytest

from spine_orm.attributes import (
    Exclusion,
    Format,
    Inclusion,
    Length,
    Presence,
    check,
    define_attribute,
    is_blank,
)
from spine_orm.errors import ErrorCategory, SchemaError, ValidationError
from spine_orm.types import AttributeKind, Integer, Nullable


class TestIsBlank:
    @pytest.mark.parametrize("value", [None, "", "   ", [], {}, ()])
    def test_blank(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", 0, False, [0]])
    def test_not_blank(self, value):
        assert not is_blank(value)


class TestDefineAttribute:
    def test_nullable_by_default(self):
        attr = define_attribute("year", "integer")
        assert attr.nullable
        assert attr.type == Nullable(Integer())
        assert str(attr) == "year: integer?"

    def test_not_nullable(self):
        attr = define_attribute("year", AttributeKind.INTEGER, nullable=False)
        assert not attr.nullable
        assert attr.kind == AttributeKind.INTEGER

    def test_type_instance_is_wrapped(self):
        attr = define_attribute("year", Integer())
        assert attr.type == Nullable(Integer())

    def test_primary_key_flag(self):
        assert define_attribute("id", "integer", primary_key=True).primary_key

    def test_with_validators_is_copy(self):
        attr = define_attribute("title", "string")
        extended = attr.with_validators(Presence())
        assert attr.validators == ()
        assert len(extended.validators) == 1


class TestAttributeValidate:
    def test_kind_check_first(self):
        attr = define_attribute("year", "integer", Presence())
        with pytest.raises(ValidationError) as exc_info:
            attr.validate("1851")
        assert exc_info.value.constraint == "type"
        assert exc_info.value.field == "year"
        assert exc_info.value.category == ErrorCategory.VALIDATION

    def test_none_skips_optional_validators(self):
        attr = define_attribute("title", "string", Length(maximum=3))
        attr.validate(None)

    def test_not_nullable_rejects_none(self):
        attr = define_attribute("year", "integer", nullable=False)
        with pytest.raises(ValidationError, match="'year' can't be null") as exc_info:
            attr.validate(None)
        assert exc_info.value.constraint == "null"

    def test_not_nullable_primary_key_accepts_none(self):
        define_attribute("id", "integer", nullable=False, primary_key=True).validate(None)

    def test_fail_fast(self):
        """Only the first violated validator is reported."""
        attr = define_attribute("title", "string", Presence(), Length(minimum=2))
        with pytest.raises(ValidationError) as exc_info:
            attr.validate("")
        assert exc_info.value.constraint == "presence"

    def test_serialize_none(self):
        assert define_attribute("year", "integer").serialize(None) is None


class TestPresence:
    def test_rejects_none(self):
        with pytest.raises(ValidationError, match="can't be blank"):
            define_attribute("name", "string", Presence()).validate(None)

    def test_rejects_whitespace(self):
        with pytest.raises(ValidationError, match="can't be blank"):
            define_attribute("name", "string", Presence()).validate("  ")

    def test_accepts_value(self):
        define_attribute("name", "string", Presence()).validate("Melville")


class TestLength:
    def test_too_long(self):
        attr = define_attribute("title", "string", Length(maximum=5))
        with pytest.raises(ValidationError, match=r"is too long \(maximum is 5 characters\)"):
            attr.validate("Moby-Dick")

    def test_too_short(self):
        attr = define_attribute("title", "string", Length(minimum=5))
        with pytest.raises(ValidationError, match=r"is too short \(minimum is 5 characters\)"):
            attr.validate("Omoo")

    def test_within_bounds(self):
        define_attribute("title", "string", Length(minimum=1, maximum=5)).validate("Omoo")

    def test_invalid_bounds(self):
        with pytest.raises(SchemaError, match="maximum can't be less than minimum"):
            Length(minimum=5, maximum=1)

    def test_negative_minimum(self):
        with pytest.raises(SchemaError):
            Length(minimum=-1)


class TestFormat:
    def test_with_pattern(self):
        attr = define_attribute("isbn", "string", Format(with_=r"^\d{3}-\d{10}$"))
        attr.validate("978-0142437247")
        with pytest.raises(ValidationError, match="has invalid format"):
            attr.validate("n/a")

    def test_without_pattern(self):
        attr = define_attribute("title", "string", Format(without=r"\d"))
        attr.validate("Omoo")
        with pytest.raises(ValidationError):
            attr.validate("Typee 2")

    def test_requires_exactly_one_pattern(self):
        with pytest.raises(SchemaError):
            Format()
        with pytest.raises(SchemaError):
            Format(with_="a", without="b")

    def test_invalid_regex(self):
        with pytest.raises(SchemaError, match="invalid pattern"):
            Format(with_="(")


class TestInclusionExclusion:
    def test_inclusion(self):
        attr = define_attribute("genre", "string", Inclusion(in_=("novel", "poetry")))
        attr.validate("novel")
        with pytest.raises(ValidationError, match="is not included in the list"):
            attr.validate("essay")

    def test_exclusion(self):
        attr = define_attribute("name", "string", Exclusion(from_=("admin",)))
        with pytest.raises(ValidationError, match="is reserved"):
            attr.validate("admin")


class TestCheck:
    def test_predicate(self):
        attr = define_attribute("year", "integer", check("integer", lambda y: y > 1800, "is too early"))
        attr.validate(1851)
        with pytest.raises(ValidationError, match="is too early") as exc_info:
            attr.validate(1700)
        assert exc_info.value.constraint == "check"

    def test_kind_mismatch_reported(self):
        attr = define_attribute("code", "string", check("integer", lambda v: True))
        with pytest.raises(ValidationError, match="for integer type"):
            attr.validate("abc")
