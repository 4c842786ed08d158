import os
import sys

import pytest

# Ensure the package root is importable without an editable install
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from autopecas.config.settings import settings
from autopecas.infrastructure.kv_store import MemoryKvStore

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(scope="session", autouse=True)
def isolated_settings():
    """
    Testes nunca falam com Redis, catálogo ou SIGE reais: KV em memória e
    catálogo desconfigurado, independentemente do .env do desenvolvedor.
    """
    settings.cache.enable_redis = False
    settings.catalog.base_url = None
    settings.catalog.api_key = None
    settings.auth.admin_token = ADMIN_TOKEN
    settings.auth.admin_token_previous = ""


@pytest.fixture
def kv():
    return MemoryKvStore()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}
