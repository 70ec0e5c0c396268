import os
import tempfile

# Keep the log file of the test run out of the project tree
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "bazaraki-radar-tests.log"))

import pytest  # noqa: E402

from ad_store import AdStore  # noqa: E402
from database_manager import DatabaseManager  # noqa: E402
from subscription_registry import SubscriptionRegistry  # noqa: E402


@pytest.fixture
def database(tmp_path):
    return DatabaseManager(str(tmp_path / "radar.db"))


@pytest.fixture
def ad_store(database):
    return AdStore(database)


@pytest.fixture
def registry(database):
    return SubscriptionRegistry(database)
