# Tests for packaging and dependency sanity.
#
# Every third-party module imported by the package must be declared in
# pyproject.toml, and the test tooling must live in the dev extra.

import ast
import sys
import tomllib
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
PYPROJECT = ROOT / "pyproject.toml"
PACKAGE = ROOT / "src" / "framesnap"

# import name -> distribution name
DISTRIBUTIONS = {
    "playwright": "playwright",
    "pydantic": "pydantic",
    "pydantic_settings": "pydantic-settings",
    "rich": "rich",
}


def _load_pyproject() -> dict:
    return tomllib.loads(PYPROJECT.read_text())


def _names(specs: list[str]) -> set[str]:
    return {s.lower().split(">=")[0].split("[")[0].strip() for s in specs}


def _imported_top_level() -> set[str]:
    found = set()
    for path in PACKAGE.rglob("*.py"):
        tree = ast.parse(path.read_text())
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                found.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                found.add(node.module.split(".")[0])
    return found - set(sys.stdlib_module_names) - {"framesnap"}


def test_every_import_is_declared():
    """Core deps must cover every third-party import of the package."""
    core = _names(_load_pyproject()["project"]["dependencies"])
    for module in _imported_top_level():
        assert module in DISTRIBUTIONS, f"unexpected third-party import: {module}"
        assert DISTRIBUTIONS[module] in core, f"{DISTRIBUTIONS[module]} missing from dependencies"


def test_test_tooling_in_dev_extra():
    dev = _names(_load_pyproject()["project"]["optional-dependencies"]["dev"])
    assert {"pytest", "pytest-asyncio"} <= dev


def test_asyncio_mode_auto():
    data = _load_pyproject()
    assert data["tool"]["pytest"]["ini_options"]["asyncio_mode"] == "auto"
