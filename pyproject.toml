[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "facturacion"
version = "0.1.0"
description = "Ecuadorian electronic invoice documents in XML, with SQLite storage, an audit trail and database backups"
requires-python = ">=3.10"
dependencies = []
keywords = ["factura", "facturacion", "sri", "ecuador", "invoice", "sqlite", "xml", "backup"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Natural Language :: Spanish",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Accounting",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["facturacion"]

[tool.pytest.ini_options]
addopts = "-ra"
