[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "reflutter"
version = "0.8.4"
description = "Flutter application analysis toolkit: snapshot hashing, engine lookup, archive patching and proxy configuration"
requires-python = ">=3.10"
keywords = ["flutter", "dart", "apk", "ipa", "snapshot", "proxy", "elf", "frida"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Information Technology",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Software Development :: Disassemblers",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
reflutter = "reflutter.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["reflutter"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
