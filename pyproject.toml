[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tyr"
version = "0.1.0"
description = "Building blocks for a BitTorrent client: peer wire protocol, piece bitmaps, rate limiting, file helpers and a JSON-RPC WSGI handler"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = ["bittorrent", "torrent", "peer-wire", "json-rpc", "rate-limit", "bitmap", "wsgi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
    "Topic :: Internet",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tyr"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
