"""JSON-LD validation and the context and identifier fix-ups applied to harvested documents.

The fix-ups edit the document text in place, leaving everything they do not
touch byte for byte as it was, and tolerate the small syntax slips (missing or
trailing commas) that are common in JSON-LD published on the web.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Iterator

log = logging.getLogger(__name__)

HTTP_CONTEXT = "http://schema.org/"
HTTPS_CONTEXT = "https://schema.org/"

STANDARD_HTTPS_CONTEXT: dict[str, str] = {
    "@vocab": "https://schema.org/",
    "adms": "https://www.w3.org/ns/adms#",
    "dcat": "https://www.w3.org/ns/dcat#",
    "dct": "https://purl.org/dc/terms/",
    "foaf": "https://xmlns.com/foaf/0.1/",
    "gsp": "https://www.opengis.net/ont/geosparql#",
    "locn": "https://www.w3.org/ns/locn#",
    "owl": "https://www.w3.org/2002/07/owl#",
    "rdf": "https://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "https://www.w3.org/2000/01/rdf-schema#",
    "schema": "https://schema.org/",
    "skos": "https://www.w3.org/2004/02/skos/core#",
    "spdx": "https://spdx.org/rdf/terms#",
    "time": "https://www.w3.org/2006/time",
    "vcard": "https://www.w3.org/2006/vcard/ns#",
    "xsd": "https://www.w3.org/2001/XMLSchema#",
}

STANDARD_HTTP_CONTEXT: dict[str, str] = {
    "@vocab": "http://schema.org/",
    "adms": "http://www.w3.org/ns/adms#",
    "dcat": "http://www.w3.org/ns/dcat#",
    "dct": "http://purl.org/dc/terms/",
    "foaf": "http://xmlns.com/foaf/0.1/",
    "gsp": "http://www.opengis.net/ont/geosparql#",
    "locn": "http://www.w3.org/ns/locn#",
    "owl": "http://www.w3.org/2002/07/owl#",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "schema": "http://schema.org/",
    "skos": "http://www.w3.org/2004/02/skos/core#",
    "spdx": "http://spdx.org/rdf/terms#",
    "time": "http://www.w3.org/2006/time",
    "vcard": "http://www.w3.org/2006/vcard/ns#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
}


class ContextOption(Enum):
    """How a source's JSON-LD context should be treated."""

    STRICT = "strict"
    HTTPS = "https"
    HTTP = "http"
    STANDARDIZED_HTTPS = "standardized_https"
    STANDARDIZED_HTTP = "standardized_http"


class InvalidJsonLDError(ValueError):
    """Raised when a document is not usable JSON-LD or cannot be edited."""


# --- tolerant text scanner -------------------------------------------------

_WHITESPACE = " \t\r\n"
_LITERAL_END = ",:}] \t\r\n"
_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def _skip_ws(text: str, i: int) -> int:
    while i < len(text) and text[i] in _WHITESPACE:
        i += 1
    return i


def _skip_separators(text: str, i: int) -> int:
    while i < len(text) and (text[i] in _WHITESPACE or text[i] == ","):
        i += 1
    if i >= len(text):
        raise InvalidJsonLDError("unexpected end of document")
    return i


def _skip_string(text: str, i: int) -> int:
    i += 1
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == '"':
            return i + 1
        i += 1
    raise InvalidJsonLDError("unterminated string")


def _skip_value(text: str, i: int) -> int:
    """Return the offset just past the value starting at ``i``."""
    if i >= len(text):
        raise InvalidJsonLDError("unexpected end of document")
    char = text[i]
    if char == '"':
        return _skip_string(text, i)
    if char in "{[":
        depth = 0
        while i < len(text):
            char = text[i]
            if char == '"':
                i = _skip_string(text, i)
                continue
            if char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    return i + 1
            i += 1
        raise InvalidJsonLDError("unterminated container")
    end = i
    while end < len(text) and text[end] not in _LITERAL_END:
        end += 1
    if end == i:
        raise InvalidJsonLDError(f"unexpected character {char!r} at offset {i}")
    return end


def _members(text: str, start: int) -> Iterator[tuple[str, int, int]]:
    """Yield ``(key, value_start, value_end)`` for the object starting at ``start``."""
    i = start + 1
    while True:
        i = _skip_separators(text, i)
        if text[i] == "}":
            return
        if text[i] != '"':
            raise InvalidJsonLDError(f"expected an object key at offset {i}")
        key_end = _skip_string(text, i)
        key = json.loads(text[i:key_end])
        i = _skip_ws(text, key_end)
        if i >= len(text) or text[i] != ":":
            raise InvalidJsonLDError(f"expected ':' at offset {i}")
        i = _skip_ws(text, i + 1)
        value_end = _skip_value(text, i)
        yield key, i, value_end
        i = value_end


def _elements(text: str, start: int) -> Iterator[tuple[int, int]]:
    """Yield ``(value_start, value_end)`` for the array starting at ``start``."""
    i = start + 1
    while True:
        i = _skip_separators(text, i)
        if text[i] == "]":
            return
        end = _skip_value(text, i)
        yield i, end
        i = end


def _child(text: str, start: int, segment: str) -> tuple[int, int] | None:
    if text[start] == "{":
        for key, value_start, value_end in _members(text, start):
            if key == segment:
                return value_start, value_end
    elif text[start] == "[" and segment.isdigit():
        wanted = int(segment)
        for index, span in enumerate(_elements(text, start)):
            if index == wanted:
                return span
    return None


def _top(text: str) -> tuple[int, int] | None:
    start = _skip_ws(text, 0)
    if start >= len(text):
        return None
    return start, _skip_value(text, start)


def _lookup(text: str, path: list[str]) -> tuple[int, int] | None:
    """Find the span of the value at ``path``; ``None`` when absent or unreadable."""
    try:
        span = _top(text)
        for segment in path:
            if span is None:
                return None
            span = _child(text, span[0], segment)
        return span
    except InvalidJsonLDError:
        return None


def _as_string(raw: str) -> str:
    """Read a raw value as text: strings decoded, null empty, anything else verbatim."""
    if raw.startswith('"'):
        try:
            return json.loads(raw)
        except ValueError:
            return raw[1:-1]
    if raw == "null":
        return ""
    return raw


def _get_string(text: str, path: list[str]) -> str:
    span = _lookup(text, path)
    return "" if span is None else _as_string(text[span[0]:span[1]])


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _insert_member(text: str, start: int, key: str, value: Any) -> str:
    close = _skip_value(text, start) - 1
    has_members = next(_members(text, start), None) is not None
    member = ("," if has_members else "") + _encode(key) + ":" + _encode(value)
    return text[:close] + member + text[close:]


def _set(text: str, path: list[str], value: Any) -> str:
    """Return ``text`` with the value at ``path`` replaced or added."""
    span = _top(text)
    if span is None:
        raise InvalidJsonLDError("cannot set a value in an empty document")
    start, end = span
    for depth, segment in enumerate(path):
        child = _child(text, start, segment)
        if child is None:
            if text[start] != "{":
                raise InvalidJsonLDError(
                    f"cannot set {'.'.join(path)}: {segment!r} is not an object member"
                )
            nested = value
            for key in reversed(path[depth + 1:]):
                nested = {key: nested}
            return _insert_member(text, start, segment, nested)
        start, end = child
    return text[:start] + _encode(value) + text[end:]


# --- validation -------------------------------------------------------------


def _check_context(context: Any) -> None:
    for item in context if isinstance(context, list) else [context]:
        if item is None or isinstance(item, str):
            continue
        if not isinstance(item, dict):
            raise InvalidJsonLDError("invalid local context")
        for term, definition in item.items():
            if term in ("@base", "@vocab", "@language"):
                if definition is not None and not isinstance(definition, str):
                    raise InvalidJsonLDError(f"invalid {term} mapping")
                continue
            if term.startswith("@") or definition is None or isinstance(definition, str):
                continue
            if not isinstance(definition, dict):
                raise InvalidJsonLDError(f"invalid term definition for {term!r}")
            for keyword in ("@id", "@type", "@reverse"):
                mapped = definition.get(keyword)
                if mapped is not None and not isinstance(mapped, str):
                    raise InvalidJsonLDError(f"invalid IRI mapping for {term!r}")
            if "@context" in definition:
                _check_context(definition["@context"])


def _check_object(obj: dict[str, Any]) -> None:
    if "@context" in obj:
        _check_context(obj["@context"])
    node_id = obj.get("@id")
    if node_id is not None and not isinstance(node_id, str):
        raise InvalidJsonLDError("invalid @id value")
    node_type = obj.get("@type")
    if isinstance(node_type, list):
        if not all(isinstance(item, str) for item in node_type):
            raise InvalidJsonLDError("invalid type value")
    elif node_type is not None and not isinstance(node_type, str):
        raise InvalidJsonLDError("invalid type value")
    if isinstance(obj.get("@value"), (dict, list)) and node_type != "@json":
        raise InvalidJsonLDError("invalid value object value")
    graph = obj.get("@graph")
    if graph is not None and not isinstance(graph, (dict, list)):
        raise InvalidJsonLDError("invalid @graph value")
    for key, value in obj.items():
        if key != "@context":
            _check_element(value)


def _check_element(value: Any) -> None:
    if isinstance(value, list):
        for item in value:
            _check_element(item)
    elif isinstance(value, dict):
        _check_object(value)


def _validate(jsonld: str) -> dict[str, Any]:
    try:
        document = json.loads(jsonld)
    except ValueError as exc:
        raise InvalidJsonLDError(f"error in unmarshaling json: {exc}") from exc
    if not isinstance(document, dict):
        raise InvalidJsonLDError("error in unmarshaling json: document is not a JSON object")
    try:
        _check_object(document)
    except InvalidJsonLDError as exc:
        raise InvalidJsonLDError(f"error in JSON-LD to RDF call: {exc}") from exc
    return document


def is_valid(jsonld: str) -> bool:
    """Return whether ``jsonld`` is a JSON object that can be read as JSON-LD."""
    try:
        _validate(jsonld)
    except InvalidJsonLDError:
        return False
    return True


def _marshal(value: Any) -> str:
    encoded = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return (
        encoded.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def is_graph_array(jsonld: str) -> tuple[bool, list[str]]:
    """Split a top-level array of objects into its valid JSON-LD members."""
    try:
        document = json.loads(jsonld)
    except ValueError:
        return False, []
    if not isinstance(document, list):
        return False, []
    if not all(item is None or isinstance(item, dict) for item in document):
        return False, []
    found = [encoded for encoded in map(_marshal, document) if is_valid(encoded)]
    return bool(found), found


def add_to_json_list_if_valid(jsonlds: list[str], new_json: str) -> list[str]:
    """Return ``jsonlds`` extended with ``new_json``; raise if it is not valid JSON-LD.

    A top-level array of objects is accepted too: the result is then its valid
    members followed by the array text itself.
    """
    try:
        _validate(new_json)
    except InvalidJsonLDError as exc:
        graph_array, members = is_graph_array(new_json)
        if graph_array:
            return [*members, new_json]
        raise InvalidJsonLDError(f"error checking for valid json: {exc}") from exc
    return [*jsonlds, new_json]


# --- context and identifier fix-ups -----------------------------------------


def fix_context_string(jsonld: str, option: ContextOption) -> str:
    """Turn a top-level string ``@context`` into ``{"@vocab": <string>}``."""
    span = _lookup(jsonld, ["@context"])
    if span is None or jsonld[span[0]] != '"':
        return jsonld
    return _set(jsonld, ["@context"], {"@vocab": _as_string(jsonld[span[0]:span[1]])})


def fix_context_url(jsonld: str, ctx: str) -> str:
    """Add a missing ``@vocab`` and normalise schema.org entries of the context to ``ctx``."""
    span = _lookup(jsonld, ["@context"])
    contexts: dict[str, str] = {}
    if span is not None and jsonld[span[0]] == "{":
        for key, start, end in list(_members(jsonld, span[0])):
            contexts[key] = _as_string(jsonld[start:end])
    if "@vocab" not in contexts:
        jsonld = _set(jsonld, ["@context", "@vocab"], HTTPS_CONTEXT)
    for namespace, context in contexts.items():
        if "schema.org" in context:
            if "www." in context:
                context = ctx + context[context.index("schema.org"):]
            if len(context) < 20:
                context = ctx
        jsonld = _set(jsonld, ["@context", namespace], context)
    return jsonld


def fix_context_array(jsonld: str, option: ContextOption) -> str:
    """Replace a top-level array ``@context`` with the standard https context."""
    span = _lookup(jsonld, ["@context"])
    if span is not None and jsonld[span[0]] == "[":
        return standardize_context(jsonld, ContextOption.STANDARDIZED_HTTPS)
    return jsonld


def standardize_context(jsonld: str, option: ContextOption) -> str:
    """Set ``@context`` to the standard context for the standardized options."""
    if option is ContextOption.STANDARDIZED_HTTPS:
        return _set(jsonld, ["@context"], STANDARD_HTTPS_CONTEXT)
    if option is ContextOption.STANDARDIZED_HTTP:
        return _set(jsonld, ["@context"], STANDARD_HTTP_CONTEXT)
    return jsonld


def _id_paths(jsonld: str, top_level_type: str) -> list[list[str]]:
    if top_level_type == "Dataset":
        return [["@id"]] if _lookup(jsonld, ["@id"]) is not None else []
    span = _lookup(jsonld, ["itemListElement"])
    if span is None or jsonld[span[0]] != "[":
        return []
    paths = []
    for index, _ in enumerate(list(_elements(jsonld, span[0]))):
        path = ["itemListElement", str(index), "item", "@id"]
        if _lookup(jsonld, path) is not None:
            paths.append(path)
    return paths


def fix_id(jsonld: str) -> str:
    """Make relative ``@id`` values absolute ``file://`` IRIs when no ``@base`` is given.

    Applies to the ``@id`` of a top-level Dataset and to the item ids of a
    top-level ItemList; other documents are returned unchanged.
    """
    if _get_string(jsonld, ["@context", "@base"]):
        return jsonld
    top_level_type = _get_string(jsonld, ["@type"])
    if top_level_type not in ("Dataset", "ItemList"):
        log.debug("Found a top-level type of %s in this jsonld document", top_level_type)
        return jsonld
    for path in _id_paths(jsonld, top_level_type):
        identifier = _get_string(jsonld, path)
        if _SCHEME.match(identifier):
            log.debug("JSON-LD IRI id found: %s", identifier)
            continue
        log.debug("Transforming id %s to a file:// url because it is relative", identifier)
        jsonld = _set(jsonld, path, "file://" + identifier)
    return jsonld


def get_options(ctx_option: ContextOption) -> tuple[ContextOption, str]:
    """Return the fix-up option and the schema.org context URL to use for a source."""
    if ctx_option is ContextOption.STRICT:
        return ContextOption.STRICT, HTTPS_CONTEXT
    if ctx_option in (ContextOption.HTTPS, ContextOption.STANDARDIZED_HTTPS):
        return ContextOption.HTTPS, HTTPS_CONTEXT
    return ContextOption.HTTPS, HTTP_CONTEXT


def process_json(
    jsonld: str,
    fix_option: ContextOption = ContextOption.HTTPS,
    strict: bool = False,
) -> str:
    """Apply the context and identifier fix-ups unless both the run and the source are strict."""
    source_option, context_url = get_options(fix_option)
    if strict and source_option is ContextOption.STRICT:
        return jsonld
    log.info("context.strict is not set to true; doing json-ld fixups.")
    steps = (
        ("Fixing JSON-LD context from string to be an object",
         lambda doc: fix_context_string(doc, source_option)),
        ("Fixing JSON-LD context from array to be an object",
         lambda doc: fix_context_array(doc, source_option)),
        ("Fixing JSON-LD context url scheme and trailing slash",
         lambda doc: fix_context_url(doc, context_url)),
        ("Removing relative JSON-LD @id", fix_id),
    )
    for action, step in steps:
        try:
            jsonld = step(jsonld)
        except InvalidJsonLDError as exc:
            log.error("Action: %s Error: %s", action, exc)
    return jsonld