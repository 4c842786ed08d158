import pytest

from autopecas.utils import sku_utils


pytestmark = pytest.mark.unit


def test_base_before_dash():
    assert sku_utils.base_before_dash("112274376-01") == "112274376"
    assert sku_utils.base_before_dash("ABC123") is None


def test_clean_code_if_distinct():
    assert sku_utils.clean_code_if_distinct("11.227 4376") == "112274376"
    assert sku_utils.clean_code_if_distinct("ABC123") is None
    # Igual à parte base: tentativa já coberta pela estratégia do hífen
    assert sku_utils.clean_code_if_distinct("ABC-") is None


def test_sync_code_keys():
    assert sku_utils.sync_code_keys("00-12.3") == ["00-12.3", "-12.3", "00123"]
    assert sku_utils.sync_code_keys("000") == ["000"]
    assert sku_utils.sync_code_keys("") == []
