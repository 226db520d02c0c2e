"""REST control channel."""

from binance_stream.rest.control import ControlChannel, Security
from binance_stream.rest.drift import DriftEstimator
from binance_stream.rest.signer import Signer, canonical_query

__all__ = [
    "ControlChannel",
    "Security",
    "DriftEstimator",
    "Signer",
    "canonical_query",
]
