import json

import pytest

from gleaner.jsonld import (
    ContextOption,
    InvalidJsonLDError,
    add_to_json_list_if_valid,
    fix_context_array,
    fix_context_string,
    fix_context_url,
    fix_id,
    get_options,
    is_graph_array,
    is_valid,
    process_json,
    standardize_context,
)

HTTPS = "https://schema.org/"
HTTP = "http://schema.org/"
NAME = "Some type in a graph"

INVALID_JSON = "not a json document: {\"."

VALID_JSON = json.dumps(
    {"@graph": [{"@context": {"SO": HTTP}, "@type": "bar", "SO:name": NAME}]},
    indent=2,
)

GRAPH_CONTEXT = {
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "schema": HTTP,
    "xsd": "http://www.w3.org/2001/XMLSchema#",
}
GRAPH_MEMBERS = [
    {
        "@id": "https://data.example.com/dataset/resource/1",
        "@type": "schema:DataDownload",
        "schema:encodingFormat": "GeoJSON",
        "schema:name": "GeoJSON",
        "schema:url": "https://gis.example.com/datasets/5.geojson",
    }
]
CONTEXT_OBJECT_GRAPH_JSON = json.dumps({"@context": GRAPH_CONTEXT, "@graph": GRAPH_MEMBERS}, indent=3)

LOCAL_NAMESPACE = {
    "NAME": "schema:name",
    "census_profile": {"@id": "schema:subjectOf", "@type": "@id"},
}
CONTEXT_LOCAL_NAMESPACE_JSON = json.dumps(
    {"@context": [HTTPS, LOCAL_NAMESPACE], "@type": "bar", "SO:name": NAME}, indent=4
)

_W3 = "https://www.w3.org/"
STANDARD_CONTEXT = {
    "@vocab": HTTPS,
    "schema": HTTPS,
    "adms": _W3 + "ns/adms#",
    "dcat": _W3 + "ns/dcat#",
    "locn": _W3 + "ns/locn#",
    "owl": _W3 + "2002/07/owl#",
    "rdf": _W3 + "1999/02/22-rdf-syntax-ns#",
    "rdfs": _W3 + "2000/01/rdf-schema#",
    "skos": _W3 + "2004/02/skos/core#",
    "time": _W3 + "2006/time",
    "vcard": _W3 + "2006/vcard/ns#",
    "xsd": _W3 + "2001/XMLSchema#",
    "dct": "https://purl.org/dc/terms/",
    "foaf": "https://xmlns.com/foaf/0.1/",
    "gsp": "https://www.opengis.net/ont/geosparql#",
    "spdx": "https://spdx.org/rdf/terms#",
}
STANDARDIZED = {"@context": STANDARD_CONTEXT, "@type": "bar", "SO:name": NAME}


# --- validity -------------------------------------------------------------


def test_is_valid_true_for_valid_jsonld():
    assert is_valid(VALID_JSON) is True


def test_is_valid_false_for_invalid_json():
    assert is_valid(INVALID_JSON) is False


def test_is_valid_false_for_top_level_array():
    assert is_valid('[{"@type": "bar"}]') is False


def test_is_valid_false_for_non_string_id():
    assert is_valid('{"@id": 5, "@type": "bar"}') is False


def test_add_appends_valid_json():
    original = ["test"]
    result = add_to_json_list_if_valid(original, VALID_JSON)
    assert result == ["test", VALID_JSON]
    assert original == ["test"]


def test_add_rejects_invalid_json():
    original = ["test"]
    with pytest.raises(InvalidJsonLDError, match="error checking for valid json"):
        add_to_json_list_if_valid(original, INVALID_JSON)
    assert original == ["test"]


def test_is_graph_array_splits_members():
    doc = '[{"b": 1, "@type": "x"}, {"@type": "y"}]'
    found, members = is_graph_array(doc)
    assert found is True
    assert members == ['{"@type":"x","b":1}', '{"@type":"y"}']


def test_is_graph_array_rejects_object():
    assert is_graph_array(VALID_JSON) == (False, [])


def test_add_accepts_graph_array():
    doc = '[{"@type": "x"}]'
    assert add_to_json_list_if_valid(["old"], doc) == ['{"@type":"x"}', doc]


# --- context string ---------------------------------------------------------


CONTEXT_OBJECT_JSON = json.dumps({"@context": {"@vocab": HTTP}, "@type": "bar", "SO:name": NAME}, indent=4)


def test_context_string_rewritten_to_object():
    doc = json.dumps({"@context": HTTP, "@type": "bar", "SO:name": NAME}, indent=4)
    result = fix_context_string(doc, ContextOption.HTTPS)
    assert json.loads(result) == json.loads(CONTEXT_OBJECT_JSON)


def test_context_string_leaves_object_unchanged():
    assert fix_context_string(CONTEXT_OBJECT_JSON, ContextOption.HTTPS) == CONTEXT_OBJECT_JSON


def test_context_string_leaves_object_graph_unchanged():
    result = fix_context_string(CONTEXT_OBJECT_GRAPH_JSON, ContextOption.HTTPS)
    assert result == CONTEXT_OBJECT_GRAPH_JSON


def test_context_string_leaves_array_unchanged():
    result = fix_context_string(CONTEXT_LOCAL_NAMESPACE_JSON, ContextOption.HTTPS)
    assert result == CONTEXT_LOCAL_NAMESPACE_JSON


# --- context url ------------------------------------------------------------


def _doc(context: dict) -> str:
    return json.dumps({"@context": context, "@type": "bar", "SO:name": NAME}, indent=1)


EXPECTED_V1 = {"@context": {"@vocab": HTTPS}, "@type": "bar", "SO:name": NAME}
EXPECTED_V2 = {"@context": {"@vocab": HTTPS, "schema": HTTPS}, "@type": "bar", "SO:name": NAME}


@pytest.mark.parametrize(
    "context, expected",
    [
        ({"@vocab": "https://schema.org"}, EXPECTED_V1),
        ({"@vocab": HTTP}, EXPECTED_V1),
        ({"@vocab": "http://schema.org"}, EXPECTED_V1),
        ({"@vocab": "https://schema.org", "schema": "https://schema.org"}, EXPECTED_V2),
        ({"@vocab": HTTP, "schema": HTTP}, EXPECTED_V2),
        ({"@vocab": "http://schema.org", "schema": "http://schema.org"}, EXPECTED_V2),
    ],
)
def test_context_url_fixed(context, expected):
    assert json.loads(fix_context_url(_doc(context), HTTPS)) == expected


def test_context_url_object_graph_uses_https():
    result = json.loads(fix_context_url(CONTEXT_OBJECT_GRAPH_JSON, HTTPS))
    assert result["@context"] == dict(GRAPH_CONTEXT, schema=HTTPS, **{"@vocab": HTTPS})
    assert result["@graph"] == GRAPH_MEMBERS


def test_context_url_adds_missing_context():
    result = fix_context_url('{"@type": "x"}', HTTPS)
    assert json.loads(result) == {"@type": "x", "@context": {"@vocab": HTTPS}}


def test_context_url_rejects_string_context():
    with pytest.raises(InvalidJsonLDError):
        fix_context_url('{"@context": "https://schema.org/"}', HTTPS)


# --- context array ----------------------------------------------------------


def test_context_array_standardized():
    doc = json.dumps(
        {
            "@context": [{"@vocab": HTTPS}, dict(LOCAL_NAMESPACE, **{"@vocab": HTTPS})],
            "@type": "bar",
            "SO:name": NAME,
        },
        indent=2,
    )
    assert json.loads(fix_context_array(doc, ContextOption.HTTPS)) == STANDARDIZED


def test_context_array_leaves_object_unchanged():
    doc = json.dumps({"@context": {"@vocab": HTTP}, "@type": "bar", "SO:name": NAME}, indent=2)
    assert fix_context_array(doc, ContextOption.HTTPS) == doc


def test_context_array_mixed_content_standardized():
    # The array holds a bare key/value pair, which is not strictly valid JSON.
    doc = (
        '{"@context": ["@vocab": "https://schema.org/", '
        '{"@vocab": "https://schema.org/", "NAME": "schema:name", '
        '"census_profile": {"@id": "schema:subjectOf", "@type": "@id"}}], '
        '"@type": "bar", "SO:name": "Some type in a graph"}'
    )
    assert json.loads(fix_context_array(doc, ContextOption.HTTPS)) == STANDARDIZED


def test_context_array_local_namespace_standardized():
    result = fix_context_array(CONTEXT_LOCAL_NAMESPACE_JSON, ContextOption.HTTPS)
    assert json.loads(result) == STANDARDIZED


def test_standardize_context_http():
    result = json.loads(standardize_context('{"@type": "x"}', ContextOption.STANDARDIZED_HTTP))
    assert result["@context"]["@vocab"] == HTTP
    assert result["@context"]["xsd"] == "http://www.w3.org/2001/XMLSchema#"


def test_standardize_context_other_option_unchanged():
    doc = '{"@context": ["a"]}'
    assert standardize_context(doc, ContextOption.HTTPS) == doc


# --- ids --------------------------------------------------------------------


def _dataset(identifier: str, base: str | None = None) -> str:
    context = {"@vocab": HTTPS}
    if base is not None:
        context["@base"] = base
    return json.dumps({"@context": context, "@type": "Dataset", "@id": identifier}, indent=4)


def test_fix_id_keeps_doc_with_base():
    doc = _dataset("some_cool_guid", base="http://valid-json.com")
    assert fix_id(doc) == doc


def test_fix_id_keeps_full_iri():
    doc = _dataset("http://www.test.com/some_cool_guid")
    assert fix_id(doc) == doc


def test_fix_id_makes_relative_id_file_url():
    doc = _dataset("some_cool_guid")
    assert fix_id(doc) == _dataset("file://some_cool_guid")


def test_fix_id_item_list():
    # Missing commas and a trailing comma, as harvested pages often have.
    doc = (
        '{"@context": {"@vocab": "https://schema.org/"}, "@type": "ItemList", '
        '"@id": "list id" "itemListElement": ['
        '{"@type": "ListItem", "@id": "item id" "item": {"@type": "Dataset", "@id": "some_cool_guid"}}, '
        '{"@type": "ListItem", "@id": "item id" "item": {"@type": "Dataset", "@id": "another_cool_guid"}}, '
        "]}"
    )
    expected = doc.replace('"some_cool_guid"', '"file://some_cool_guid"').replace(
        '"another_cool_guid"', '"file://another_cool_guid"'
    )
    result = fix_id(doc)
    assert result == expected
    assert result.count("file://") == 2


def test_fix_id_keeps_base_and_full_iri():
    doc = _dataset("http://www.test.com/some_cool_guid", base="http://valid-json.com")
    assert fix_id(doc) == doc


def test_fix_id_ignores_other_types():
    doc = '{"@type": "Person", "@id": "relative"}'
    assert fix_id(doc) == doc


# --- options and pipeline ---------------------------------------------------


@pytest.mark.parametrize(
    "option, expected",
    [
        (ContextOption.STRICT, (ContextOption.STRICT, HTTPS)),
        (ContextOption.HTTPS, (ContextOption.HTTPS, HTTPS)),
        (ContextOption.STANDARDIZED_HTTPS, (ContextOption.HTTPS, HTTPS)),
        (ContextOption.HTTP, (ContextOption.HTTPS, HTTP)),
        (ContextOption.STANDARDIZED_HTTP, (ContextOption.HTTPS, HTTP)),
    ],
)
def test_get_options(option, expected):
    assert get_options(option) == expected


DOC = '{"@context":"http://schema.org","@type":"Dataset","@id":"abc"}'


def test_process_json_applies_fixups():
    result = json.loads(process_json(DOC, ContextOption.HTTPS, False))
    assert result == {
        "@context": {"@vocab": HTTPS},
        "@type": "Dataset",
        "@id": "file://abc",
    }


def test_process_json_strict_source_and_run_unchanged():
    assert process_json(DOC, ContextOption.STRICT, True) == DOC


def test_process_json_strict_run_but_lenient_source_fixes():
    result = json.loads(process_json(DOC, ContextOption.HTTPS, True))
    assert result["@id"] == "file://abc"


def test_process_json_output_is_valid():
    assert is_valid(process_json(CONTEXT_LOCAL_NAMESPACE_JSON, ContextOption.HTTPS, False))