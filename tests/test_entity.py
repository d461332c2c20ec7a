"""Tests for spine_orm.record module: entity state, attributes and persistence."""

import pytest

from spine_orm import define
from spine_orm.errors import (
    ErrorCategory,
    MissingPrimaryKeyError,
    OperationCancelledError,
    RecordAlreadyPersistedError,
    RecordNotFoundError,
    RecordNotUniqueError,
    RowCountMismatchError,
    UnknownAttributeError,
    ValidationError,
)
from spine_orm.execution import new_context
from spine_orm.record import Entity, EntityState


class TestEntityAttributes:
    def test_identity(self, library):
        book = library.Book.new({"title": "Typee"})
        assert book.schema_name == "book"
        assert book.table_name == "books"
        assert book.primary_key == "id"
        assert book.id is None
        assert book.new_record
        assert not book.persisted

    def test_item_access(self, library):
        book = library.Book.new({"title": "Typee"})
        assert book["title"] == "Typee"
        assert book.attribute("year") is None

    def test_unknown_attribute(self, library):
        book = library.Book.new()
        with pytest.raises(UnknownAttributeError):
            book["isbn"]
        with pytest.raises(UnknownAttributeError):
            book.assign_attribute("isbn", "x")

    def test_attribute_named_name(self):
        """An attribute called "name" does not clash with the schema name."""
        Tag = define("tag", lambda s: s.string("name"))
        tag = Tag.new({"name": "whaling"})
        assert tag["name"] == "whaling"
        assert tag.schema_name == "tag"

    def test_assign_attributes_is_all_or_nothing(self, library):
        book = library.Book.new({"title": "Typee"})
        with pytest.raises(UnknownAttributeError):
            book.assign_attributes({"title": "Omoo", "isbn": "x"})
        assert book["title"] == "Typee"

    def test_attribute_present(self, library):
        book = library.Book.new({"title": "  "})
        assert not book.attribute_present("title")
        book.assign_attribute("title", "Omoo")
        assert book.attribute_present("title")

    def test_to_dict_only_assigned(self, library):
        book = library.Book.new({"year": 1846, "title": "Typee"})
        assert book.to_dict() == {"title": "Typee", "year": 1846}

    def test_repr(self, library):
        book = library.Book.new({"title": "Typee", "year": 1846})
        assert repr(book) == "#<Book title: 'Typee', year: 1846>"


class TestEntityValidation:
    def test_is_valid(self, library):
        assert library.Book.new({"title": "Typee"}).is_valid()
        assert not library.Book.new({"title": ""}).is_valid()

    def test_fail_fast_reports_first_attribute(self, library):
        book = library.Author.new({"name": "", "born": "yesterday"})
        with pytest.raises(ValidationError) as exc_info:
            book.validate()
        # born sorts before name
        assert exc_info.value.field == "born"
        assert exc_info.value.constraint == "type"

    def test_length(self, library):
        with pytest.raises(ValidationError, match="maximum is 80"):
            library.Author.new({"name": "x" * 81}).validate()

    def test_category(self, library):
        with pytest.raises(ValidationError) as exc_info:
            library.Book.new().validate()
        assert exc_info.value.category == ErrorCategory.VALIDATION
        assert exc_info.value.context.entity == "book"


class TestEntityInsert:
    def test_generated_id_merged(self, library, connection):
        book = library.Book.new({"title": "Typee"})
        assert book.insert() is book
        assert isinstance(book.id, int)
        assert book.state is EntityState.PERSISTED

    def test_explicit_id(self, library, connection):
        book = library.Book.new({"id": 42, "title": "Typee"}).insert()
        assert book.id == 42
        assert library.Book.find(42)["title"] == "Typee"

    def test_generated_ids_after_explicit(self, library, connection):
        library.Book.new({"id": 42, "title": "Typee"}).insert()
        later = library.Book.create({"title": "Omoo"})
        assert later.id > 42

    def test_duplicate_primary_key(self, library, connection):
        library.Book.new({"id": 7, "title": "Typee"}).insert()
        with pytest.raises(RecordNotUniqueError) as exc_info:
            library.Book.new({"id": 7, "title": "Omoo"}).insert()
        assert exc_info.value.category == ErrorCategory.EXECUTION

    def test_insert_twice(self, library, connection):
        book = library.Book.create({"title": "Typee"})
        with pytest.raises(RecordAlreadyPersistedError):
            book.insert()

    def test_invalid_not_inserted(self, library, connection):
        with pytest.raises(ValidationError):
            library.Book.new({"title": ""}).insert()
        assert library.Book.to_list() == []

    def test_cancelled_context(self, library, connection):
        ctx = new_context()
        ctx.cancel()
        book = library.Book.new({"title": "Typee"})
        with pytest.raises(OperationCancelledError):
            book.insert(ctx)
        assert book.new_record


class TestEntityUpdate:
    def test_update(self, library, connection):
        book = library.Book.create({"title": "Typee", "year": 1845})
        book.assign_attribute("year", 1846)
        assert book.update() is book
        assert library.Book.find(book.id)["year"] == 1846

    def test_update_to_null(self, library, connection):
        book = library.Book.create({"title": "Typee", "year": 1846})
        book.assign_attribute("year", None)
        book.update()
        assert library.Book.find(book.id)["year"] is None

    def test_update_without_primary_key(self, library, connection):
        with pytest.raises(MissingPrimaryKeyError, match="without a primary key"):
            library.Book.new({"title": "Typee"}).update()

    def test_update_missing_row(self, library, connection):
        book = library.Book.new({"id": 99, "title": "Typee"})
        with pytest.raises(RowCountMismatchError, match="got 0 rows affected"):
            book.update()

    def test_update_validates(self, library, connection):
        book = library.Book.create({"title": "Typee"})
        book.assign_attribute("title", "")
        with pytest.raises(ValidationError):
            book.update()
        assert library.Book.find(book.id)["title"] == "Typee"

    def test_loaded_entity_updates(self, library, connection):
        library.Book.create({"title": "Typee"})
        loaded = library.Book.first()
        assert loaded.persisted
        loaded.assign_attribute("title", "Typee: A Peep at Polynesian Life")
        loaded.update()
        assert library.Book.find(loaded.id)["title"].startswith("Typee:")


class TestEntityDelete:
    def test_delete(self, library, connection):
        book = library.Book.create({"title": "Typee"})
        book.delete()
        assert book.deleted
        with pytest.raises(RecordNotFoundError):
            library.Book.find(book.id)

    def test_delete_without_primary_key(self, library, connection):
        with pytest.raises(MissingPrimaryKeyError):
            library.Book.new({"title": "Typee"}).delete()


class TestEntityContext:
    def test_with_context_copies(self, library, connection):
        book = library.Book.create({"title": "Typee"})
        ctx = new_context()
        bound = book.with_context(ctx)
        assert bound.context is ctx
        assert book.context is None
        assert bound.id == book.id
        assert bound.persisted

    def test_with_cancelled_context(self, library, connection):
        book = library.Book.create({"title": "Typee"})
        ctx = new_context()
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            book.with_context(ctx).delete()
        assert library.Book.find(book.id)

    def test_load(self, library):
        book = Entity.load(library.Book, {"id": 1, "title": "Typee"})
        assert book.persisted
        assert book.id == 1
