from __future__ import annotations

import pytest

from core.errors import InvalidRequest
from core.services.query import encode_params, parse_options
from core.services.resource_uri import content_type_uri, parse_resource_uri


def test_parse_options_accepts_json_text() -> None:
    options = parse_options('{"pagination": {"page": 2, "pageSize": 5}, "sort": ["title:asc"]}')

    assert options.pagination is not None
    assert options.pagination.page == 2
    assert options.pagination.page_size == 5
    assert options.sort == ["title:asc"]


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '{"unknown": 1}', '{"pagination": {"page": 0}}'])
def test_parse_options_rejects_bad_input(raw: str) -> None:
    with pytest.raises(InvalidRequest):
        parse_options(raw)


def test_encode_params_uses_bracket_notation() -> None:
    options = parse_options(
        {
            "filters": {"title": {"$contains": "hello"}, "featured": True},
            "pagination": {"page": 1, "pageSize": 10},
            "sort": ["title:asc", "id:desc"],
            "populate": ["author"],
        }
    )

    assert encode_params(options) == [
        ("filters[title][$contains]", "hello"),
        ("filters[featured]", "true"),
        ("pagination[page]", "1"),
        ("pagination[pageSize]", "10"),
        ("sort[0]", "title:asc"),
        ("sort[1]", "id:desc"),
        ("populate[0]", "author"),
    ]


def test_absent_options_send_nothing() -> None:
    assert encode_params(parse_options(None)) == []
    assert encode_params(parse_options({"populate": "*"})) == [("populate", "*")]


def test_resource_uri_with_query() -> None:
    ref = parse_resource_uri(
        'strapi://content-type/api::article.article?filters={"title":{"$eq":"x"}}&page=2&pageSize=5'
        "&sort=title:asc,id:desc&populate=author,tags&fields=title"
    )

    assert ref.uid == "api::article.article"
    assert ref.entry_id is None
    assert ref.options.filters == {"title": {"$eq": "x"}}
    assert ref.options.pagination.page == 2
    assert ref.options.pagination.page_size == 5
    assert ref.options.sort == ["title:asc", "id:desc"]
    assert ref.options.populate == ["author", "tags"]
    assert ref.options.fields == ["title"]


def test_resource_uri_with_entry() -> None:
    ref = parse_resource_uri("strapi://content-type/api::article.article/12?populate=*")

    assert ref.entry_id == "12"
    assert ref.options.populate == "*"


@pytest.mark.parametrize(
    "uri",
    [
        "http://content-type/api::article.article",
        "strapi://content-types/api::article.article",
        "strapi://content-type/api::article.article?page=two",
    ],
)
def test_resource_uri_rejects_bad_uris(uri: str) -> None:
    with pytest.raises(InvalidRequest):
        parse_resource_uri(uri)


def test_content_type_uri() -> None:
    assert content_type_uri("api::tag.tag") == "strapi://content-type/api::tag.tag"
