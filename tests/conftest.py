import pytest

from binance_stream.config.configs import StreamConfig
from fakes import FakeSocketFactory


@pytest.fixture
def socket_factory() -> FakeSocketFactory:
    """Factory whose sockets are driven by the test."""
    return FakeSocketFactory()


@pytest.fixture
def stream_config() -> StreamConfig:
    """Config with beautification off so payloads arrive untouched."""
    return StreamConfig(ws_base_url="wss://stream.test", beautify=False)
