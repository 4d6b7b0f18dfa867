import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import httpx

from rpc_config import DEFAULT_TIMEOUT

JSONRPC_VERSION = "2.0"

_MISSING = object()


class RPCClientError(RuntimeError):
    pass


class RPCTransportError(RPCClientError):
    """Connection failure or timeout; no response was read."""


class RPCDecodeError(RPCClientError):
    """A response arrived but is not a valid JSON-RPC envelope."""


@dataclass(frozen=True)
class RPCRequest:
    method: str
    params: Tuple[Any, ...] = ()
    id: int = 1

    def to_payload(self) -> Dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
            "params": list(self.params),
            "id": self.id,
        }


@dataclass(frozen=True)
class RPCErrorObject:
    code: int
    message: str


@dataclass(frozen=True)
class RPCResponse:
    id: Optional[int]
    result: Any = None
    error: Optional[RPCErrorObject] = None
    jsonrpc: str = field(default=JSONRPC_VERSION)

    @classmethod
    def from_payload(cls, payload: Any) -> "RPCResponse":
        if not isinstance(payload, dict):
            raise RPCDecodeError(f"expected JSON object, got {type(payload).__name__}")

        result = payload.get("result", _MISSING)
        raw_error = payload.get("error", _MISSING)
        has_result = result is not _MISSING
        has_error = raw_error is not _MISSING and raw_error is not None
        if has_result == has_error:
            raise RPCDecodeError("response must carry exactly one of result/error")

        # id is null when the server could not read the request id
        resp_id = payload.get("id")
        if resp_id is not None and (not isinstance(resp_id, int) or isinstance(resp_id, bool)):
            raise RPCDecodeError(f"id must be an integer, got {resp_id!r}")

        error = None
        if has_error:
            if not isinstance(raw_error, dict):
                raise RPCDecodeError("error member is not an object")
            code = raw_error.get("code")
            message = raw_error.get("message")
            if not isinstance(code, int) or isinstance(code, bool) or not isinstance(message, str):
                raise RPCDecodeError("error member needs integer code and string message")
            error = RPCErrorObject(code=code, message=message)
            result = None

        return cls(
            id=resp_id,
            result=result,
            error=error,
            jsonrpc=str(payload.get("jsonrpc", JSONRPC_VERSION)),
        )


def rpc_call(
    url: str,
    request: RPCRequest,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.BaseTransport] = None,
) -> RPCResponse:
    """POST one JSON-RPC request and decode the envelope.

    ``timeout`` caps the whole call, body included. httpx only bounds each
    individual read, so the deadline is checked between body chunks; a call
    ends at most one read timeout past it.

    The HTTP status is not checked; the body alone decides between a
    protocol-level error and a decode failure.
    """
    deadline = time.monotonic() + timeout
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            with client.stream(
                "POST",
                url,
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
            ) as resp:
                chunks = []
                for chunk in resp.iter_bytes():
                    if time.monotonic() > deadline:
                        raise RPCTransportError(f"timed out after {timeout:g}s")
                    chunks.append(chunk)
                status = resp.status_code
    except httpx.HTTPError as e:
        raise RPCTransportError(str(e) or type(e).__name__) from e

    try:
        payload = json.loads(b"".join(chunks))
    except ValueError as e:
        raise RPCDecodeError(f"HTTP {status}: invalid JSON body") from e

    try:
        return RPCResponse.from_payload(payload)
    except RPCDecodeError as e:
        raise RPCDecodeError(f"HTTP {status}: {e}") from e
