import pytest

from autopecas.infrastructure.erp_client import ErpResponse


class FakeErp:
    """
    SIGE falso para os serviços: responde por caminho exato e registra as
    chamadas. Caminhos desconhecidos retornam 404.
    """

    def __init__(self, responses=None, ready_reason=None, errors=None):
        self.responses = dict(responses or {})
        self.ready_reason = ready_reason
        self.errors = dict(errors or {})
        self.calls = []

    async def is_ready(self):
        return self.ready_reason

    async def request(self, method, path, json=None):
        self.calls.append((method, path))
        if path in self.errors:
            raise self.errors[path]
        if path in self.responses:
            status, data = self.responses[path]
            return ErpResponse(ok=200 <= status < 300, status=status, data=data)
        return ErpResponse(ok=False, status=404, data={"message": "not found"})


@pytest.fixture
def fake_erp_factory():
    def _factory(responses=None, ready_reason=None, errors=None):
        return FakeErp(responses, ready_reason, errors)

    return _factory


class FixedClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FixedClock()
