[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deckkit"
version = "0.1.0"
description = "Convert declarative Kong gateway configuration between formats and into Kong Ingress Controller manifests"
requires-python = ">=3.10"
keywords = ["kong", "declarative", "kubernetes", "ingress", "gateway-api", "manifests", "konnect"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml>=6.0",
    "python-slugify>=8.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
deckkit = "deckkit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["deckkit"]

[tool.pytest.ini_options]
addopts = "-ra"
