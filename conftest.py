import pytest

from bookshelf.library import Library
from bookshelf.ui_helpers import OUTPUT_MODE_ENV


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    # Output mode lives in the environment; reset it for every test
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")


@pytest.fixture
def data_file(tmp_path, request):
    # Unique data file per test
    return str(tmp_path / f"books_{request.node.name}.txt")


@pytest.fixture
def lib(data_file):
    return Library(data_file=data_file)
