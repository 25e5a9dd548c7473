"""Object storage for harvested JSON-LD and the provenance graphs written alongside it."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from string import Template

from gleaner.jsonld import process_json
from gleaner.settings import JSON_CONTENT_TYPE, ConfigError, GleanerConfig

log = logging.getLogger(__name__)

_METADATA_DIR = ".metadata"

_PROV_TEMPLATE = Template("""{
	"@context": {
	  "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
	  "prov": "http://www.w3.org/ns/prov#",
	  "rdfs": "http://www.w3.org/2000/01/rdf-schema#"
	},
	"@graph": [
	  {
		"@id": "${PID}",
		"@type": "prov:Organization",
		"rdf:name": "${PNAME}",
		"rdfs:seeAlso": "${DOMAIN}"
	  },
	  {
		"@id": "${RESID}",
		"@type": "prov:Entity",
		"prov:wasAttributedTo": {
		  "@id": "${PID}"
		},
		"prov:value": "${RESID}"
	  },
	  {
		"@id": "https://gleaner.io/id/collection/${SHA256}",
		"@type": "prov:Collection",
		"prov:hadMember": {
		  "@id": "${RESID}"
		}
	  },
	  {
		"@id": "${URN}",
		"@type": "prov:Entity",
		"prov:value": "${SHA256}.jsonld"
	  },
	  {
		"@id": "https://gleaner.io/id/run/${SHA256}",
		"@type": "prov:Activity",
		"prov:endedAtTime": {
		  "@value": "${DATE}",
		  "@type": "http://www.w3.org/2001/XMLSchema#dateTime"
		},
		"prov:generated": {
		  "@id": "${URN}"
		},
		"prov:used": {
		  "@id": "https://gleaner.io/id/collection/${SHA256}"
		}
	  }
	]
  }""")


@dataclass(frozen=True)
class StoredObject:
    """An object held in a store, with its content type and user metadata."""

    bucket: str
    name: str
    data: bytes
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


def _to_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


class ObjectStore(ABC):
    """A bucketed object store."""

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        name: str,
        data: bytes | str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Write an object, replacing any object of the same name."""

    @abstractmethod
    def stat_object(self, bucket: str, name: str) -> StoredObject | None:
        """Return the object, or ``None`` when it does not exist."""


class MemoryStore(ObjectStore):
    """An object store kept in memory."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self._lock = threading.Lock()

    def put_object(self, bucket, name, data, content_type, metadata=None):
        stored = StoredObject(bucket, name, _to_bytes(data), content_type, dict(metadata or {}))
        with self._lock:
            self.objects[(bucket, name)] = stored

    def stat_object(self, bucket, name):
        with self._lock:
            return self.objects.get((bucket, name))


def _safe_parts(value: str, what: str) -> tuple[str, ...]:
    path = PurePosixPath(value)
    parts = path.parts
    if not parts or path.is_absolute() or any(part in ("..", ".") for part in parts):
        raise ValueError(f"invalid {what}: {value!r}")
    return parts


class DirectoryStore(ObjectStore):
    """An object store that keeps each bucket as a directory under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._lock = threading.Lock()

    def _paths(self, bucket: str, name: str) -> tuple[Path, Path]:
        (bucket_part,) = _safe_parts(bucket, "bucket name") if "/" not in bucket else (None,)
        if bucket_part is None or bucket_part == _METADATA_DIR:
            raise ValueError(f"invalid bucket name: {bucket!r}")
        parts = _safe_parts(name, "object name")
        if parts[0] == _METADATA_DIR:
            raise ValueError(f"invalid object name: {name!r}")
        base = self.root / bucket_part
        data_path = base.joinpath(*parts)
        meta_path = base.joinpath(_METADATA_DIR, *parts[:-1], parts[-1] + ".json")
        return data_path, meta_path

    def put_object(self, bucket, name, data, content_type, metadata=None):
        data_path, meta_path = self._paths(bucket, name)
        info = {"content_type": content_type, "metadata": dict(metadata or {})}
        with self._lock:
            data_path.parent.mkdir(parents=True, exist_ok=True)
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            data_path.write_bytes(_to_bytes(data))
            meta_path.write_text(json.dumps(info), encoding="utf-8")

    def stat_object(self, bucket, name):
        data_path, meta_path = self._paths(bucket, name)
        with self._lock:
            if not data_path.is_file():
                return None
            data = data_path.read_bytes()
            info = (
                json.loads(meta_path.read_text(encoding="utf-8"))
                if meta_path.is_file()
                else {"content_type": "", "metadata": {}}
            )
        return StoredObject(bucket, name, data, info["content_type"], info["metadata"])


def _sha1(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def _escape(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)[1:-1]


def prov_graph(
    config: GleanerConfig,
    source_name: str,
    sha: str,
    urlloc: str,
    now: datetime | None = None,
) -> str:
    """Render the PROV-O JSON-LD graph describing how ``urlloc`` was harvested."""
    moment = now or datetime.now()
    pid = pname = domain = "unknown"
    for source in config.sources:
        if source.name == source_name:
            pid, pname, domain = source.pid, source.proper_name, source.domain
    urn = f"urn:{config.bucket or ''}:{source_name}:{sha}"
    values = {
        "RESID": urlloc,
        "SHA256": sha,
        "PID": pid,
        "SOURCE": source_name,
        "DATE": moment.strftime("%Y-%m-%d"),
        "RUNID": config.run_id,
        "URN": urn,
        "PNAME": pname,
        "DOMAIN": domain,
    }
    return _PROV_TEMPLATE.substitute({key: _escape(value) for key, value in values.items()})


def store_prov_named_graph(
    store: ObjectStore, config: GleanerConfig, source_name: str, sha: str, urlloc: str
) -> str:
    """Write the provenance graph for a harvested document and return its object name."""
    if not config.bucket:
        raise ConfigError("no minio bucket configured")
    graph = prov_graph(config, source_name, sha, urlloc)
    object_name = f"prov/{source_name}/{_sha1(graph)}.jsonld"
    metadata = {"url": urlloc, "sha1": sha}
    store.put_object(config.bucket, object_name, graph, JSON_CONTENT_TYPE, metadata)
    return object_name


@dataclass(frozen=True)
class _Identifier:
    unique_id: str
    json_sha: str
    identifier_type: str
    matched_path: str = ""
    matched_string: str = ""


def _identify(jsonld: str, identifier_type: str) -> _Identifier:
    json_sha = _sha1(jsonld)
    try:
        canonical = json.dumps(json.loads(jsonld), sort_keys=True, separators=(",", ":"))
        unique_id = _sha1(canonical)
    except ValueError:
        unique_id = json_sha
    return _Identifier(unique_id, json_sha, identifier_type or "identifiersha")


def upload(
    store: ObjectStore,
    config: GleanerConfig,
    bucket: str,
    source_name: str,
    urlloc: str,
    jsonld: str,
) -> str:
    """Fix up and store one JSON-LD document with its provenance.

    Returns the document's identifier, or an empty string when an object of
    that name is already stored (it is then left untouched).
    """
    source = config.get_source(source_name)
    jsonld = process_json(jsonld, source.fix_context_option, config.strict)
    identifier = _identify(jsonld, source.identifier_type)
    sha = identifier.unique_id
    object_name = f"summoned/{source_name}/{sha}.jsonld"

    metadata = {
        "url": urlloc,
        "sha1": sha,
        "uniqueid": sha,
        "jsonsha": identifier.json_sha,
        "identifiertype": identifier.identifier_type,
    }
    if identifier.matched_path:
        metadata["matchedpath"] = identifier.matched_path
        metadata["matchedstring"] = identifier.matched_string
    if source.identifier_type == "identifierstring":
        metadata["sha1"] = identifier.json_sha
    if source.identifier_type == "sourceurl":
        log.info("not suppported, yet. needs url sanitizing")

    try:
        store_prov_named_graph(store, config, source_name, sha, urlloc)
    except (ConfigError, OSError, ValueError) as exc:
        log.error("Error storing provenance for %s: %s", urlloc, exc)

    if store.stat_object(bucket, object_name) is not None:
        log.warning("Object already exists: %s", object_name)
        return ""

    store.put_object(bucket, object_name, jsonld, JSON_CONTENT_TYPE, metadata)
    log.debug("Uploaded Bucket: %s File: %s Size %d", bucket, object_name, len(jsonld.encode("utf-8")))
    return sha