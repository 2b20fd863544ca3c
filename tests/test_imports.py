import pytest
import importlib

def test_imports():
    """Verify that critical modules can be imported without error."""
    modules_to_test = [
        "voting",
        "voting.console",
        "oracles",
        "tools",
    ]

    for module_name in modules_to_test:
        try:
            importlib.import_module(module_name)
        except Exception as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


def test_project_metadata_readme():
    """The package long description must not point at a design document."""
    tomllib = pytest.importorskip("tomllib")
    from pathlib import Path

    root = Path(__file__).resolve().parent.parent
    with open(root / "pyproject.toml", "rb") as f:
        project = tomllib.load(f)["project"]

    assert project["name"] == "quadvote"
    readme = project.get("readme")
    if readme is not None:
        assert readme != "SPEC_FULL.md"
        assert (root / readme).exists()
