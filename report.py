import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from rpc_config import BURST_SIZE, NetworkClass
from stability import ProbeResult


@dataclass(frozen=True)
class Summary:
    total: int
    online_count: int
    fastest: Optional[ProbeResult] = None
    slowest: Optional[ProbeResult] = None
    best_per_class: Dict[NetworkClass, ProbeResult] = field(default_factory=dict)

    @property
    def online_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.online_count / self.total


def summarize(results: Sequence[ProbeResult]) -> Summary:
    online = [r for r in results if r.online]

    # min/max keep the first of equal elements, so ties go to registry order
    fastest = min(online, key=lambda r: r.response_time) if online else None
    slowest = max(online, key=lambda r: r.response_time) if online else None

    best: Dict[NetworkClass, ProbeResult] = {}
    for r in online:
        cur = best.get(r.network_class)
        if cur is None or r.response_time < cur.response_time:
            best[r.network_class] = r

    return Summary(
        total=len(results),
        online_count=len(online),
        fastest=fastest,
        slowest=slowest,
        best_per_class=best,
    )


def _mark(ok: bool) -> str:
    return "PASS" if ok else "FAIL"


def format_result_line(r: ProbeResult) -> str:
    status = "ONLINE " if r.online else "OFFLINE"
    return (
        f"{r.endpoint_name:<12} | {status} | {r.response_ms:5d}ms"
        f" | Rate: {r.rate_limit_successes:2d}/{BURST_SIZE} {_mark(r.rate_limit_ok)}"
        f" | Errors: {_mark(r.error_handling_ok)}"
        f" | Block: {r.block_height}"
    )


def render_report(results: Sequence[ProbeResult], summary: Summary) -> str:
    lines: List[str] = [
        "RPC Stability Test Results",
        "==========================",
    ]
    for r in results:
        lines.append(format_result_line(r))
        if not r.online and r.last_error:
            lines.append(f"{'':12}   Error: {r.last_error}")

    lines.append("")
    lines.append(
        f"Summary: {summary.online_count}/{summary.total} endpoints online"
        f" ({summary.online_ratio * 100:.1f}%)"
    )
    if summary.fastest is not None and summary.slowest is not None:
        lines.append(f"Fastest: {summary.fastest.endpoint_name} ({summary.fastest.response_ms}ms)")
        lines.append(f"Slowest: {summary.slowest.endpoint_name} ({summary.slowest.response_ms}ms)")

    lines.append("")
    lines.append("Recommendations")
    lines.append("===============")
    if not summary.best_per_class:
        lines.append("No endpoint online; nothing to recommend.")
    for net in NetworkClass:
        best = summary.best_per_class.get(net)
        if best is None:
            continue
        lines.append(
            f"Best {net.value} RPC: {best.endpoint_name} ({best.response_ms}ms response time)"
        )
        lines.append(f"   URL: {best.address}")
    return "\n".join(lines)


def _result_dict(r: ProbeResult) -> Dict[str, Any]:
    return {
        "endpoint": r.endpoint_name,
        "address": r.address,
        "network": r.network_class.value,
        "online": r.online,
        "response_ms": r.response_ms,
        "block_height": r.block_height,
        "rate_limit_ok": r.rate_limit_ok,
        "rate_limit_successes": r.rate_limit_successes,
        "error_handling_ok": r.error_handling_ok,
        "last_error": r.last_error,
    }


def results_to_json(results: Sequence[ProbeResult], summary: Summary) -> str:
    payload = {
        "results": [_result_dict(r) for r in results],
        "summary": {
            "total": summary.total,
            "online": summary.online_count,
            "fastest": summary.fastest.endpoint_name if summary.fastest else None,
            "slowest": summary.slowest.endpoint_name if summary.slowest else None,
            "recommendations": {
                net.value: {"endpoint": best.endpoint_name, "address": best.address}
                for net, best in summary.best_per_class.items()
            },
        },
    }
    return json.dumps(payload, indent=2)
