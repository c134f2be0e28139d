import pytest

from pgsetup.config import DATABASE_ENV_VARS
from pgsetup.models import Flavor
from tests.provisioner_utils import make_settings


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def manta_settings(tmp_path):
    return make_settings(tmp_path, flavor=Flavor.MANTA)


@pytest.fixture(autouse=True)
def _no_db_name_override(monkeypatch):
    for name in DATABASE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
