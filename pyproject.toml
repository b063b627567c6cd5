[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "u2fhid"
version = "0.1.0"
description = "U2F HID packet framing, U2F commands, a device-polling state machine and in-memory tokens"
requires-python = ">=3.10"
dependencies = []
keywords = ["u2f", "fido", "hid", "authenticator", "security-key", "apdu"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["u2fhid"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
