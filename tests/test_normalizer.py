from __future__ import annotations

from core.domain.models import ResultKind
from core.services.normalizer import descriptor_from_raw, normalize, normalize_schema


def test_data_list_keeps_items_and_meta() -> None:
    meta = {"pagination": {"page": 2, "pageSize": 2, "pageCount": 5, "total": 9}}
    result = normalize({"data": [{"id": 1}, {"id": 2}], "meta": meta})

    assert result.kind is ResultKind.COLLECTION
    assert result.data == [{"id": 1}, {"id": 2}]
    assert result.meta == meta
    assert result.warnings == []


def test_empty_collection_is_stable_when_normalized_again() -> None:
    first = normalize({"data": [], "meta": {}})
    again = normalize(first.as_collection())

    assert first.as_collection() == {"data": [], "meta": {}}
    assert again.as_collection() == first.as_collection()


def test_bare_list_gets_synthetic_pagination() -> None:
    result = normalize([{"id": 1}, {"id": 2}, {"id": 3}])

    assert result.kind is ResultKind.COLLECTION
    assert result.meta == {"pagination": {"page": 1, "pageSize": 3, "pageCount": 1, "total": 3}}


def test_admin_results_shape() -> None:
    result = normalize({"results": [{"id": 5}], "pagination": {"page": 1, "pageSize": 10, "total": 1}})

    assert result.kind is ResultKind.COLLECTION
    assert result.data == [{"id": 5}]
    assert result.meta["pagination"]["total"] == 1


def test_error_marked_items_are_dropped() -> None:
    result = normalize({"data": [{"id": 1}, {"error": "broken"}], "meta": {}})

    assert result.data == [{"id": 1}]


def test_error_envelope_is_empty_for_reads_and_error_for_writes() -> None:
    body = {"data": None, "error": {"status": 404, "name": "NotFoundError", "message": "Not Found"}}

    read = normalize(body)
    write = normalize(body, write=True)

    assert read.kind is ResultKind.EMPTY
    assert read.as_collection() == {"data": [], "meta": {}}
    assert write.kind is ResultKind.ERROR
    assert write.warnings == ["Not Found"]


def test_single_entry_shapes() -> None:
    wrapped = normalize({"data": {"id": 4, "title": "x"}, "meta": {}})
    bare = normalize({"id": 4, "documentId": "abc", "title": "x"})

    assert wrapped.kind is ResultKind.ENTRY
    assert wrapped.as_entry() == {"id": 4, "title": "x"}
    assert bare.kind is ResultKind.ENTRY
    assert bare.as_entry()["documentId"] == "abc"


def test_empty_body() -> None:
    assert normalize(None).kind is ResultKind.EMPTY
    assert normalize("").kind is ResultKind.EMPTY


def test_unrecognized_shape_is_wrapped_with_warning(caplog) -> None:
    result = normalize({"something": "else"})

    assert result.kind is ResultKind.UNRECOGNIZED
    assert result.data == [{"something": "else"}]
    assert result.warnings and "UnrecognizedResponseShape" in result.warnings[0]
    assert "UnrecognizedResponseShape" in caplog.text


def test_descriptor_from_content_type_builder_shape() -> None:
    raw = {
        "uid": "api::article.article",
        "schema": {
            "displayName": "Article",
            "singularName": "article",
            "pluralName": "articles",
            "description": "Blog posts",
            "kind": "collectionType",
            "attributes": {
                "title": {"type": "string", "required": True},
                "author": {"type": "relation", "relation": "manyToOne", "target": "api::author.author"},
            },
        },
    }

    descriptor = descriptor_from_raw(raw)

    assert descriptor is not None
    assert descriptor.summary() == {
        "uid": "api::article.article",
        "apiId": "article",
        "displayName": "Article",
        "description": "Blog posts",
    }
    assert descriptor.plural_name == "articles"
    assert descriptor.attributes["title"].required is True
    assert descriptor.attributes["author"].target == "api::author.author"


def test_descriptor_from_content_manager_shape() -> None:
    raw = {
        "uid": "api::tag.tag",
        "apiID": "tag",
        "info": {"displayName": "Tag", "pluralName": "tags"},
        "attributes": {"name": {"type": "string"}},
    }

    descriptor = descriptor_from_raw(raw)

    assert descriptor is not None
    assert descriptor.api_id == "tag"
    assert descriptor.display_name == "Tag"
    assert list(descriptor.attributes) == ["name"]


def test_normalize_schema_unwraps_data() -> None:
    descriptor = normalize_schema({"data": {"uid": "api::page.page", "schema": {"displayName": "Page"}}})

    assert descriptor is not None
    assert descriptor.display_name == "Page"
    assert normalize_schema({"data": "nope"}) is None
