import pytest
import importlib


def test_imports():
    """Verify that the package modules can be imported without error."""
    modules_to_test = [
        "sitiocompare",
        "sitiocompare.models",
        "sitiocompare.indicators",
        "sitiocompare.extract",
        "sitiocompare.trend",
        "sitiocompare.ranking",
        "sitiocompare.aggregate",
        "sitiocompare.engine",
        "sitiocompare.charts",
        "sitiocompare.tables",
        "sitiocompare.codec",
        "sitiocompare.query_lang",
        "sitiocompare.settings",
        "sitiocompare.loader",
        "sitiocompare.report",
        "sitiocompare.cli",
    ]

    for module_name in modules_to_test:
        try:
            importlib.import_module(module_name)
        except Exception as e:
            pytest.fail(f"Failed to import {module_name}: {e}")
