# gleaner

`gleaner` harvests structured metadata published as schema.org JSON-LD.
For each configured source it walks a sitemap (or the sitemaps listed in a
`robots.txt`, or a paged API), fetches every listed page, pulls out the
JSON-LD documents it finds, cleans up common context problems and stores
each document in an object store together with a small PROV-O provenance
graph describing where it came from.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## What a run does

1. Active API sources (`sourcetype: api`) are fetched page by page. The
   source URL holds a `%d` (or `%v`) that is replaced by the page number,
   starting at 0; paging stops at the first failed request, the first
   non-200 response, or after `apipagelimit` pages (0 means no limit).
2. Active sitemap sources (`sourcetype: sitemap`, the default) are read as a
   sitemap index or, if that lists no sitemaps, as a plain sitemap. Unless
   `rude` is set, `<domain>/robots.txt` is consulted: disallowed URLs are
   skipped and a `Crawl-delay` longer than the global delay becomes the
   source's delay.
3. Active robots sources (`sourcetype: robots`) point straight at a
   `robots.txt`, whose `Sitemap:` lines are followed.
4. Every page is fetched with the `Accept` type configured for its source.
   Responses served as JSON (by content type or a `.json` / `.jsonld` path)
   are taken whole; other pages are searched for
   `<script type="application/ld+json">` blocks. Documents that fail the
   JSON-LD check are logged and dropped. A top-level array of objects is
   split into its valid members.
5. Each document is stored as `summoned/<source>/<id>.jsonld` (the id is a
   SHA-1 of the document's canonical JSON) and its provenance as
   `prov/<source>/<sha>.jsonld`. A summoned document whose object already
   exists is not written again.
6. Counts per source (URLs, summoned, stored, issues, store errors) are
   appended to a `gleaner-runstats-<timestamp>.log` file in the log
   directory, with the reason the run stopped.

Failures of single sources are logged and do not stop the rest of the run.

## Configuration

The configuration is a YAML mapping; keys are matched case-insensitively.

```yaml
minio:
  bucket: gleanerbucket
summoner:
  threads: 5
  delay: 0          # milliseconds between requests; non-zero forces one thread
  mode: full
gleaner:
  runid: runX
context:
  strict: false
sources:
  - name: samplesite
    sourcetype: sitemap
    url: https://data.example.com/sitemap.xml
    domain: https://data.example.com
    active: true
    headless: false
    pid: https://example.com/id/org/samplesite
    propername: Sample Data Site
  - name: sampleapi
    sourcetype: api
    url: https://api.example.com/items?page=%d
    apipagelimit: 10
    active: true
```

A per-source `delay` longer than the global one takes precedence (and also
forces one thread), and the per-source `acceptcontenttype` overrides the
default `application/ld+json`.

Before storing, documents go through context fix-ups: a string `@context`
becomes `{"@vocab": ...}`, an array `@context` is replaced by a standard
https context, a missing `@vocab` is added, schema.org entries are normalised,
and relative `@id` values of a top-level `Dataset` or `ItemList` items become
`file://` IRIs when no `@base` is given. The per-source `fixcontextoption`
(`strict`, `https`, `http`, `standardized_https`, `standardized_http`) picks
the schema.org URL used; the fix-ups are skipped only when both
`context.strict` is true and the source's option is `strict`.

The JSON-LD check is a structural one (a JSON object with well-formed
contexts, `@id`, `@type`, `@value` and `@graph` values); it does not convert
documents to RDF.

## Command line

```
gleaner --cfg gleaner.yaml
```

Options:

- `--cfg` — path to the YAML configuration file (required)
- `--store` — directory that holds the object store buckets (default `gleaner-store`)
- `--log-dir` — directory for run reports (default `logs`)
- `--rude` — ignore `robots.txt`

The command exits with status 1 if the configuration cannot be read or the
run is interrupted (Ctrl-C or SIGTERM); the run report is still written in
that case.

## Library use

Configuration is loaded with `GleanerConfig.from_dict`, and the effective
crawl settings for one source come from `get_config`:

```python
import yaml
from gleaner.settings import GleanerConfig, get_config

with open("gleaner.yaml") as fh:
    config = GleanerConfig.from_dict(yaml.safe_load(fh))

settings = get_config(config, "samplesite")
print(settings.thread_count, settings.delay)
```

A whole harvest into a local directory:

```python
from gleaner.store import DirectoryStore
from gleaner.summoner import summon_sitemaps

run_stats = summon_sitemaps(config, DirectoryStore("harvest"), "logs")
print(run_stats.output())
```

`DirectoryStore` keeps each bucket as a directory, with object metadata in a
`.metadata` directory beside the objects. `MemoryStore` keeps objects in
memory, which is handy for trying things out.

The JSON-LD helpers in `gleaner.jsonld` work on plain strings and leave the
parts of the text they do not change as they were:

```python
from gleaner.jsonld import ContextOption, fix_context_string, fix_context_url, is_valid

doc = '{"@context": "http://schema.org", "@type": "Dataset", "name": "x"}'
doc = fix_context_string(doc, ContextOption.HTTPS)
doc = fix_context_url(doc, "https://schema.org/")
assert is_valid(doc)
```

Sitemaps and robots files can be read directly with
`gleaner.sitemaps.parse_sitemap`, `gleaner.sitemaps.get_sitemaps_from_index`,
`gleaner.robots.get_robots_txt` and `gleaner.robots.get_robots_for_domain`;
`gleaner.resources.resource_urls` gathers the URLs of all sources.

All requests identify themselves with the user agent
`EarthCube_DataBot/1.0`.

## What it does not do

- Pages that need a browser to render their JSON-LD are not harvested.
  Sources marked `headless: true` have their URLs gathered and counted, but
  they are recorded as `HeadlessServerError` and not fetched.
- There is no S3 or MinIO client: objects go to a local directory
  (`DirectoryStore`) or to memory (`MemoryStore`). The `minio.bucket` setting
  only names the bucket.
- `summoner.mode: diff` (skipping URLs harvested before) is not supported; it
  is logged and the full URL list is used.