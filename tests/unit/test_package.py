"""Unit tests for the package layout."""

import importlib

import pytest


@pytest.mark.parametrize("module", ["budinfra", "budinfra.node_metrics", "budinfra.main"])
def test_modules_import(module):
    imported = importlib.import_module(module)

    for name in getattr(imported, "__all__", []):
        assert hasattr(imported, name)
