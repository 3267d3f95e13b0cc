[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vehiclecmd"
version = "0.1.0"
description = "Client library for fleet REST API accounts, HTTPS vehicle connections, session caching and P-256 Schnorr signatures"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "vehicle",
    "fleet-api",
    "schnorr",
    "p256",
    "session-cache",
    "rest-client",
]
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
    "Topic :: Software Development :: Libraries",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["vehiclecmd"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
