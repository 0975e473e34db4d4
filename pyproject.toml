[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cdnsync"
version = "0.1.0"
description = "A small content distribution network: origin and metadata server, cache nodes, file storage server and a syncing client"
requires-python = ">=3.10"
keywords = ["cdn", "cache", "file-sync", "lru", "http", "flask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "cryptography",
    "flask",
    "requests",
    "werkzeug",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
cdnsync-meta = "cdnsync.metad:main"
cdnsync-cdn = "cdnsync.cdnd:main"
cdnsync-fss = "cdnsync.fss:main"
cdnsync-client = "cdnsync.client:main"

[tool.hatch.build.targets.wheel]
packages = ["cdnsync"]

[tool.hatch.build.targets.sdist]
include = ["cdnsync", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
