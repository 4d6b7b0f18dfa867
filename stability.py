import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from rpc_client import RPCClientError, RPCDecodeError, RPCRequest, rpc_call
from rpc_config import (
    BURST_SIZE,
    BURST_THRESHOLD,
    DEFAULT_TIMEOUT,
    HEIGHT_METHOD,
    INVALID_PARAMS,
    INVALID_PARAMS_METHOD,
    UNKNOWN_METHOD,
    Endpoint,
    NetworkClass,
)

logger = logging.getLogger("RPCStability")


@dataclass(frozen=True)
class Liveness:
    online: bool
    response_time: float = 0.0
    block_height: int = 0
    last_error: Optional[str] = None


@dataclass(frozen=True)
class ProbeResult:
    endpoint_name: str
    address: str
    network_class: NetworkClass
    online: bool
    response_time: float = 0.0
    block_height: int = 0
    rate_limit_ok: bool = False
    rate_limit_successes: int = 0
    error_handling_ok: bool = False
    last_error: Optional[str] = None

    @property
    def response_ms(self) -> int:
        return int(round(self.response_time * 1000))


def offline_result(endpoint: Endpoint, reason: str) -> ProbeResult:
    return ProbeResult(
        endpoint_name=endpoint.name,
        address=endpoint.address,
        network_class=endpoint.network_class,
        online=False,
        last_error=reason or "unknown error",
    )


# --- Prober ---


def get_block_height(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> int:
    resp = rpc_call(url, RPCRequest(HEIGHT_METHOD, (), 1), timeout=timeout, transport=transport)
    if resp.error is not None:
        raise RPCClientError(f"RPC error: {resp.error.message}")
    height = resp.result
    if isinstance(height, bool) or not isinstance(height, (int, float)):
        raise RPCDecodeError("invalid response format: block height is not numeric")
    if isinstance(height, float) and not math.isfinite(height):
        raise RPCDecodeError(f"invalid response format: block height {height} is not finite")
    return int(height)


def probe(
    endpoint: Endpoint,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> Liveness:
    t0 = time.perf_counter()
    try:
        height = get_block_height(endpoint.address, timeout=timeout, transport=transport)
    except RPCClientError as e:
        return Liveness(online=False, last_error=str(e) or type(e).__name__)
    dt = time.perf_counter() - t0
    return Liveness(online=True, response_time=dt, block_height=height)


# --- Rate limit burst ---


def run_burst(
    endpoint: Endpoint,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
    size: int = BURST_SIZE,
) -> int:
    """Fire ``size`` height queries at once and count the ones that succeed."""
    successes = 0
    lock = threading.Lock()

    def _one() -> None:
        nonlocal successes
        try:
            get_block_height(endpoint.address, timeout=timeout, transport=transport)
        except RPCClientError as e:
            logger.debug("%s burst call failed: %s", endpoint.name, e)
            return
        with lock:
            successes += 1

    with ThreadPoolExecutor(max_workers=size) as pool:
        futures = [pool.submit(_one) for _ in range(size)]
        for fut in futures:
            fut.result()

    return successes


def check_rate_limit(
    endpoint: Endpoint,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> bool:
    successes = run_burst(endpoint, timeout=timeout, transport=transport)
    return successes >= BURST_THRESHOLD


# --- Error handling ---


def check_error_handling(
    endpoint: Endpoint,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> bool:
    """Both malformed calls must come back as JSON-RPC error envelopes."""
    requests = [
        RPCRequest(UNKNOWN_METHOD, (), 1),
        RPCRequest(INVALID_PARAMS_METHOD, tuple(INVALID_PARAMS), 2),
    ]
    for req in requests:
        try:
            resp = rpc_call(endpoint.address, req, timeout=timeout, transport=transport)
        except RPCClientError as e:
            logger.debug("%s error-handling call %s failed: %s", endpoint.name, req.method, e)
            return False
        if resp.error is None:
            return False
    return True


# --- Coordinator ---


def check_endpoint(
    endpoint: Endpoint,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> ProbeResult:
    logger.info("testing %s (%s)", endpoint.name, endpoint.address)

    live = probe(endpoint, timeout=timeout, transport=transport)
    if not live.online:
        logger.info("%s offline: %s", endpoint.name, live.last_error)
        return offline_result(endpoint, live.last_error or "")

    logger.info(
        "%s online (%dms, block %d)",
        endpoint.name,
        int(live.response_time * 1000),
        live.block_height,
    )

    successes = run_burst(endpoint, timeout=timeout, transport=transport)
    logger.info("%s rate limit: %d/%d requests succeeded", endpoint.name, successes, BURST_SIZE)

    errors_ok = check_error_handling(endpoint, timeout=timeout, transport=transport)
    logger.info("%s error handling: %s", endpoint.name, "ok" if errors_ok else "failed")

    return ProbeResult(
        endpoint_name=endpoint.name,
        address=endpoint.address,
        network_class=endpoint.network_class,
        online=True,
        response_time=live.response_time,
        block_height=live.block_height,
        rate_limit_ok=successes >= BURST_THRESHOLD,
        rate_limit_successes=successes,
        error_handling_ok=errors_ok,
    )


def run_stability(
    endpoints: Sequence[Endpoint],
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> List[ProbeResult]:
    """Probe every endpoint in parallel; results follow registry order.

    Blocks until every endpoint task has finished. A task that raises is
    reported as offline and does not affect the others.
    """
    if not endpoints:
        return []

    with ThreadPoolExecutor(max_workers=len(endpoints)) as pool:
        futures = [
            pool.submit(check_endpoint, ep, timeout, transport) for ep in endpoints
        ]
        results: List[ProbeResult] = []
        for ep, fut in zip(endpoints, futures):
            try:
                results.append(fut.result())
            except Exception as e:
                logger.exception("%s probe crashed", ep.name)
                results.append(offline_result(ep, f"{type(e).__name__}: {e}"))
    return results
