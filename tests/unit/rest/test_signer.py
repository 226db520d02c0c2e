"""
Unit tests for request signing.
"""

import pytest

from binance_stream.rest.signer import Signer, canonical_query

# Published example from the Binance API documentation
DOC_SECRET = "NhqPtmdSJYdKjVHjA7PZj4Mge3R5YNiP1e3UZjInClVN65XAbvqqM6A7H5fATj0j"
DOC_QUERY = (
    "symbol=LTCBTC&side=BUY&type=LIMIT&timeInForce=GTC&quantity=1&price=0.1"
    "&recvWindow=5000&timestamp=1499827319559"
)
DOC_SIGNATURE = "c8db56825ae71d6d79447849e617115f4a920fa2acdcab2b053c4b2838bd6b71"


class TestSigner:
    """Test HMAC-SHA256 signatures."""

    def test_documented_vector(self) -> None:
        assert Signer(DOC_SECRET).sign(DOC_QUERY) == DOC_SIGNATURE

    def test_deterministic(self) -> None:
        signer = Signer("secret")

        assert signer.sign("a=1&b=2") == signer.sign("a=1&b=2")

    def test_different_input_different_signature(self) -> None:
        signer = Signer("secret")

        assert signer.sign("a=1") != signer.sign("a=2")

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            Signer("")

    def test_repr_hides_secret(self) -> None:
        assert repr(Signer("hunter2")) == "Signer(secret=***)"


class TestCanonicalQuery:
    """Test query canonicalization."""

    def test_insertion_order_preserved(self) -> None:
        params = {
            "symbol": "LTCBTC",
            "side": "BUY",
            "type": "LIMIT",
            "timeInForce": "GTC",
            "quantity": 1,
            "price": 0.1,
            "recvWindow": 5000,
            "timestamp": 1499827319559,
        }

        assert canonical_query(params) == DOC_QUERY

    def test_none_dropped_and_bools_lowercase(self) -> None:
        assert canonical_query({"symbol": None, "isIsolated": True, "all": False}) == (
            "isIsolated=true&all=false"
        )

    def test_values_url_encoded(self) -> None:
        assert canonical_query({"symbols": '["BTCUSDT","ETHUSDT"]'}) == (
            "symbols=%5B%22BTCUSDT%22%2C%22ETHUSDT%22%5D"
        )
