[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gleaner"
version = "0.1.0"
description = "Harvest schema.org JSON-LD from sitemaps, robots.txt and paged APIs into an object store with provenance graphs"
requires-python = ">=3.10"
keywords = ["json-ld", "schema.org", "sitemap", "harvester", "crawler", "robots.txt", "provenance"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
    "Topic :: Scientific/Engineering :: Information Analysis",
]
dependencies = [
    "requests>=2.28",
    "beautifulsoup4>=4.11",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
gleaner = "gleaner.summoner:main"

[tool.hatch.build.targets.wheel]
packages = ["gleaner"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
