import enum
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("RPCStability")

# --- Probe policy ---

DEFAULT_TIMEOUT = float(os.getenv("RPC_TIMEOUT", "10"))

BURST_SIZE = 20
BURST_THRESHOLD = 15

HEIGHT_METHOD = os.getenv("RPC_HEIGHT_METHOD", "getblockcount")
UNKNOWN_METHOD = "invalidmethod"
INVALID_PARAMS_METHOD = "getblock"
INVALID_PARAMS = ["invalid_hash"]


class NetworkClass(str, enum.Enum):
    TEST = "test"
    MAIN = "main"

    @classmethod
    def parse(cls, value: str) -> "NetworkClass":
        key = value.strip().lower()
        if key.endswith("net"):
            key = key[:-3]
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"unknown network class: {value!r}")


@dataclass(frozen=True)
class Endpoint:
    name: str
    address: str
    network_class: NetworkClass


RPC_ENDPOINTS = [
    Endpoint("TestNet-1", "https://testnet1.neo.coz.io:443", NetworkClass.TEST),
    Endpoint("TestNet-2", "https://testnet2.neo.coz.io:443", NetworkClass.TEST),
    Endpoint("TestNet-3", "https://testnet3.neo.coz.io:443", NetworkClass.TEST),
    Endpoint("TestNet-4", "https://testnet4.neo.coz.io:443", NetworkClass.TEST),
    Endpoint("TestNet-5", "https://testnet5.neo.coz.io:443", NetworkClass.TEST),
    Endpoint("MainNet-1", "https://mainnet1.neo.coz.io:443", NetworkClass.MAIN),
    Endpoint("MainNet-2", "https://mainnet2.neo.coz.io:443", NetworkClass.MAIN),
    Endpoint("MainNet-3", "https://mainnet3.neo.coz.io:443", NetworkClass.MAIN),
]

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def normalize_rpc_url(url: str) -> str:
    """Expand ``${VAR}`` placeholders (API keys etc.) from the environment.

    Returns an empty string when any referenced variable is unset, so the
    caller can skip the endpoint instead of probing a broken address.
    """
    missing = False

    def _sub(match: "re.Match[str]") -> str:
        nonlocal missing
        val = os.getenv(match.group(1))
        if not val:
            missing = True
            return ""
        return val

    out = _PLACEHOLDER.sub(_sub, url.strip())
    if missing:
        return ""
    return out


def parse_endpoints(value: str) -> List[Endpoint]:
    """Parse ``NAME=CLASS:URL`` items separated by commas, keeping order."""
    endpoints: List[Endpoint] = []
    seen = set()
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, rest = item.partition("=")
        cls_name, sep2, address = rest.partition(":")
        name = name.strip()
        address = address.strip()
        if not sep or not sep2 or not name or not address:
            raise ValueError(f"malformed endpoint {item!r}, expected NAME=CLASS:URL")
        if name in seen:
            raise ValueError(f"duplicate endpoint name: {name}")
        seen.add(name)
        endpoints.append(Endpoint(name, address, NetworkClass.parse(cls_name)))
    return endpoints


def load_endpoints(value: str = "", network: Optional[NetworkClass] = None) -> List[Endpoint]:
    source = value or os.getenv("RPC_STABILITY_ENDPOINTS", "")
    endpoints = parse_endpoints(source) if source else list(RPC_ENDPOINTS)

    out: List[Endpoint] = []
    for ep in endpoints:
        if network is not None and ep.network_class != network:
            continue
        address = normalize_rpc_url(ep.address)
        if not address:
            logger.warning("skipping %s: unresolved placeholder in %s", ep.name, ep.address)
            continue
        if address != ep.address:
            ep = Endpoint(ep.name, address, ep.network_class)
        out.append(ep)
    return out
