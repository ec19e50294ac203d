import threading
from datetime import date

import httpx
import pytest
from loguru import logger

from config.settings import Settings
from updown.analytics.window import PerformanceWindow
from updown.dashboard.session import DashboardSession
from updown.dashboard.web import DASHBOARD_HTML, DashboardHTTPServer
from updown.data.sources.csv_source import DashboardData
from updown.models import BacktestDataset


@pytest.fixture
def session(make_row):
    rows = [
        make_row("2025-01-06", 40.0, asset="spx"),
        make_row("2025-01-07", -25.0, asset="ndx"),
        make_row("2025-02-10", 15.0, asset="spx"),
    ]
    data = DashboardData(
        backtests=[BacktestDataset(id="s", label="Strategy", rows=rows, pnl_column="new_total_pnl_usd")],
        mc_stats_rows=[{"median_return_pct": "6", "p05_return_pct": "-4"}],
        mc_percentile_rows=[{"day": str(day), "p50": str(10000 + 5 * day)} for day in range(1, 30)],
    )
    window = PerformanceWindow(start=date(2025, 1, 1), end=date(2025, 3, 31))
    return DashboardSession(data, Settings(), window=window)


@pytest.fixture
def client(session):
    server = DashboardHTTPServer(("127.0.0.1", 0), session)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    with httpx.Client(base_url=f"http://{host}:{port}", timeout=5.0) as http:
        yield http
    server.shutdown()
    server.server_close()


def test_index_serves_dashboard_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert response.text == DASHBOARD_HTML


def test_summary_endpoint(client):
    response = client.get("/api/summary", params={"page": "1"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["kpis"]["trades"] == 3
    assert payload["config"]["scenario"] == "historical"
    assert payload["trade_log"]["page"] == 1


def test_summary_switches_scenario(client):
    payload = client.get("/api/summary", params={"scenario": "mc_p50"}).json()
    assert payload["config"]["scenario"] == "mc_p50"
    assert payload["top_stats_label"] == "50% Percentile MC Sim (Middle Ground)"


def test_summary_bad_page_defaults_to_first(client):
    payload = client.get("/api/summary", params={"page": "abc"}).json()
    assert payload["trade_log"]["page"] == 1


def test_sizing_endpoint_applies_inputs(client):
    payload = client.get(
        "/api/sizing", params={"starting_capital": "5000", "bet_size": "50", "asset_filter": "ndx"}
    ).json()
    assert payload["config"]["starting_capital"] == 5000.0
    assert payload["config"]["asset_filter"] == "ndx"
    assert payload["kpis"]["trades"] == 1
    assert payload["kpis"]["net_pnl"] == pytest.approx(-12.5)


def test_sizing_endpoint_reverts_invalid_inputs(client):
    payload = client.get(
        "/api/sizing", params={"starting_capital": "-1", "bet_size": "zero", "asset_filter": "btc"}
    ).json()
    assert payload["config"]["starting_capital"] == 10000.0
    assert payload["config"]["bet_size"] == 100.0
    assert payload["config"]["asset_filter"] == "both"


def test_monte_carlo_endpoint(client):
    payload = client.get(
        "/api/monte-carlo", params={"path": "p50", "start": "2025-01-01", "end": "2025-01-10"}
    ).json()
    assert payload["summary"]["median_return_pct"] == 6.0
    assert payload["summary"]["p95_return_pct"] is None
    assert payload["path_stats"]["days_used"] == 10


def test_unknown_route_is_404(client):
    assert client.get("/api/nothing").status_code == 404


def test_request_log_line_is_filled_in(client):
    messages = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    try:
        client.get("/api/nothing")
    finally:
        logger.remove(sink_id)

    request_lines = [m for m in messages if m.startswith("web-dashboard: ")]
    assert any('"GET /api/nothing HTTP/1.1" 404' in m for m in request_lines)
    assert not any("%s" in m for m in request_lines)
