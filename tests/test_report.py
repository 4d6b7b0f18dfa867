import json
import os
import sys

import pytest

# Add repo root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import check_rpc
from report import render_report, results_to_json, summarize
from rpc_config import NetworkClass
from stability import ProbeResult

TEST = NetworkClass.TEST
MAIN = NetworkClass.MAIN


def online(name, net, secs, height=1000):
    return ProbeResult(
        endpoint_name=name,
        address=f"https://{name.lower()}.example:443",
        network_class=net,
        online=True,
        response_time=secs,
        block_height=height,
        rate_limit_ok=True,
        rate_limit_successes=20,
        error_handling_ok=True,
    )


def offline(name, net, reason="timed out"):
    return ProbeResult(
        endpoint_name=name,
        address=f"https://{name.lower()}.example:443",
        network_class=net,
        online=False,
        last_error=reason,
    )


@pytest.fixture
def results():
    return [
        online("TestNet-1", TEST, 0.120),
        online("TestNet-2", TEST, 0.045),
        offline("TestNet-3", TEST),
        online("MainNet-1", MAIN, 0.300),
        online("MainNet-2", MAIN, 0.080),
    ]


def test_summarize_fastest_slowest_and_best(results):
    s = summarize(results)
    assert s.total == 5
    assert s.online_count == 4
    assert s.fastest.endpoint_name == "TestNet-2"
    assert s.slowest.endpoint_name == "MainNet-1"
    assert s.best_per_class[TEST].endpoint_name == "TestNet-2"
    assert s.best_per_class[MAIN].endpoint_name == "MainNet-2"


def test_best_per_class_is_minimal_online_member(results):
    s = summarize(results)
    for net, best in s.best_per_class.items():
        assert best.online and best.network_class == net
        peers = [r for r in results if r.online and r.network_class == net]
        assert all(best.response_time <= r.response_time for r in peers)


def test_summarize_class_without_online_endpoint():
    s = summarize([online("TestNet-1", TEST, 0.05), offline("MainNet-1", MAIN)])
    assert s.fastest.endpoint_name == "TestNet-1"
    assert MAIN not in s.best_per_class


def test_summarize_nothing_online():
    s = summarize([offline("TestNet-1", TEST), offline("MainNet-1", MAIN)])
    assert s.online_count == 0
    assert s.fastest is None
    assert s.slowest is None
    assert s.best_per_class == {}


def test_summarize_empty():
    s = summarize([])
    assert s.total == 0
    assert s.online_ratio == 0.0


def test_ties_go_to_registry_order():
    s = summarize([online("A", TEST, 0.1), online("B", TEST, 0.1)])
    assert s.fastest.endpoint_name == "A"
    assert s.slowest.endpoint_name == "A"
    assert s.best_per_class[TEST].endpoint_name == "A"


def test_render_report(results):
    text = render_report(results, summarize(results))
    lines = text.splitlines()

    # table rows keep input order
    rows = [l for l in lines if " | " in l]
    assert [r.split()[0] for r in rows] == [
        "TestNet-1",
        "TestNet-2",
        "TestNet-3",
        "MainNet-1",
        "MainNet-2",
    ]
    assert "OFFLINE" in rows[2]
    assert "Error: timed out" in text
    assert "Summary: 4/5 endpoints online (80.0%)" in text
    assert "Fastest: TestNet-2 (45ms)" in text
    assert "Slowest: MainNet-1 (300ms)" in text
    assert "Best test RPC: TestNet-2" in text
    assert "URL: https://mainnet-2.example:443" in text


def test_render_report_nothing_online():
    results = [offline("TestNet-1", TEST, "connection refused")]
    text = render_report(results, summarize(results))
    assert "Fastest" not in text
    assert "nothing to recommend" in text
    assert "connection refused" in text


def test_results_to_json(results):
    data = json.loads(results_to_json(results, summarize(results)))
    assert len(data["results"]) == 5
    assert data["results"][2]["online"] is False
    assert data["summary"]["fastest"] == "TestNet-2"
    assert data["summary"]["recommendations"]["main"]["endpoint"] == "MainNet-2"


# --- CLI ---


def test_cli_exit_codes(monkeypatch, capsys, results):
    monkeypatch.setattr(check_rpc, "run_stability", lambda endpoints, timeout: results)
    assert check_rpc.main(["--endpoints", "a=test:https://a.example"]) == 0
    assert "Recommendations" in capsys.readouterr().out

    down = [offline("TestNet-1", TEST)]
    monkeypatch.setattr(check_rpc, "run_stability", lambda endpoints, timeout: down)
    assert check_rpc.main(["--endpoints", "a=test:https://a.example", "--json"]) == 1
    assert json.loads(capsys.readouterr().out)["summary"]["online"] == 0


def test_cli_network_filter_and_timeout(monkeypatch):
    seen = {}

    def fake_run(endpoints, timeout):
        seen["names"] = [ep.name for ep in endpoints]
        seen["timeout"] = timeout
        return [online(ep.name, ep.network_class, 0.01) for ep in endpoints]

    monkeypatch.setattr(check_rpc, "run_stability", fake_run)
    code = check_rpc.main(
        [
            "--endpoints",
            "a=test:https://a.example,b=main:https://b.example",
            "--network",
            "main",
            "--timeout",
            "2.5",
        ]
    )
    assert code == 0
    assert seen == {"names": ["b"], "timeout": 2.5}


def test_cli_empty_registry(monkeypatch):
    monkeypatch.setattr(check_rpc, "run_stability", lambda endpoints, timeout: [])
    code = check_rpc.main(["--endpoints", "a=test:https://a.example", "--network", "main"])
    assert code == 2


def test_cli_bad_endpoints():
    with pytest.raises(SystemExit) as exc:
        check_rpc.main(["--endpoints", "broken"])
    assert exc.value.code == 2
