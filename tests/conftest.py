import logging
from unittest.mock import MagicMock

import pytest

from sqlmerge.config import ColumnMapping, MergeDefinition
from sqlmerge.gateways.base import BulkLoader, ExecutionGateway


@pytest.fixture(autouse=True)
def configure_logging():
    """Configure logging to avoid Rich Text object issues in tests."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if "Rich" in handler.__class__.__name__:
            root.removeHandler(handler)
    logging.basicConfig(level=logging.WARNING, format="%(message)s", force=True)
    yield
    logging.basicConfig(level=logging.INFO, force=True)


@pytest.fixture
def user_definition():
    """dbo.User keyed on Id with one updatable Name column."""
    return MergeDefinition(
        target_table="dbo.User",
        columns=[
            ColumnMapping(source_column="Id", native_type="int", is_key=True),
            ColumnMapping(source_column="Name", native_type="nvarchar(50)"),
        ],
    )


@pytest.fixture
def make_users():
    def _make(count):
        return [{"Id": i, "Name": f"User {i}"} for i in range(1, count + 1)]

    return _make


@pytest.fixture
def gateway():
    """Bulk-capable mock gateway whose loader records every row it receives."""
    gateway = MagicMock(spec=ExecutionGateway)
    gateway.supports_bulk_load = True
    gateway.execute.return_value = 5

    loader = MagicMock(spec=BulkLoader)
    loader.loaded_rows = []

    def load(destination, column_mappings, rows, batch_size):
        batch = list(rows)
        loader.loaded_rows.extend(batch)
        return len(batch)

    loader.load.side_effect = load
    gateway.bulk_loader.return_value = loader
    return gateway
