import importlib
import inspect

import pytest

# Mapping of module -> (ProtocolName, required_methods: {name: arity})
PORT_PROTOCOLS = {
    "binance_stream.ports.socket": (
        "StreamSocket",
        {"on": 2, "off": 2, "listeners": 1, "event_names": 0, "ping": 0, "terminate": 0},
    ),
    "binance_stream.ports.beautifier": ("Beautifier", {"beautify": 2}),
    "binance_stream.ports.secrets_provider": ("SecretsProvider", {"get": 1}),
}

# Implementation -> Protocol it must mirror
ADAPTERS = {
    ("binance_stream.adapters.aiohttp_socket", "AiohttpSocket"): "binance_stream.ports.socket",
    ("binance_stream.ports.beautifier", "IdentityBeautifier"): "binance_stream.ports.beautifier",
    ("binance_stream.adapters.env_provider", "EnvSecretsProvider"): "binance_stream.ports.secrets_provider",
}


def _positional_params(fn):
    sig = inspect.signature(fn)
    # remove self
    return [p for p in sig.parameters.values() if p.kind == p.POSITIONAL_OR_KEYWORD][1:]


@pytest.mark.parametrize("module_name,meta", PORT_PROTOCOLS.items())
def test_required_port_signatures(module_name, meta):
    proto_name, methods = meta
    module = importlib.import_module(module_name)
    proto = getattr(module, proto_name)
    assert inspect.isclass(proto), f"{proto_name} not a class"
    for method_name, arity in methods.items():
        fn = getattr(proto, method_name, None)
        assert fn is not None, f"Missing method {method_name} on {proto_name}"
        params = _positional_params(fn)
        assert len(params) == arity, f"{proto_name}.{method_name} expected {arity} args got {len(params)}"


@pytest.mark.parametrize("impl,port_module", ADAPTERS.items())
def test_adapters_implement_port_methods(impl, port_module):
    module_name, class_name = impl
    cls = getattr(importlib.import_module(module_name), class_name)
    proto_name, methods = PORT_PROTOCOLS[port_module]
    for method_name, arity in methods.items():
        fn = getattr(cls, method_name, None)
        assert callable(fn), f"{class_name} lacks {proto_name}.{method_name}"
        assert len(_positional_params(fn)) == arity
