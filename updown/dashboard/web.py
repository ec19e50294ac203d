"""
Local web dashboard for updown-perf.

A stdlib HTTP server renders one HTML page; the page pulls its numbers
from the JSON endpoints backed by a DashboardSession.
"""
from __future__ import annotations

import json
import threading
import webbrowser
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from loguru import logger

from updown.dashboard.session import DashboardSession


DASHBOARD_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Up or Down Performance</title>
  <style>
    :root {
      color-scheme: dark;
      --bg: #0a0f1c;
      --card: #121a2b;
      --muted: #8b95ad;
      --text: #e6edf3;
      --good: #26d07c;
      --bad: #ef4444;
      --accent: #60a5fa;
    }
    body {
      margin: 0;
      font-family: Inter, ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif;
      background: radial-gradient(circle at top, #14203a, var(--bg));
      color: var(--text);
    }
    .container { max-width: 1200px; margin: 20px auto; padding: 0 16px; }
    h1 { margin: 0 0 6px; font-size: 1.7rem; }
    .subtitle { color: var(--muted); margin-bottom: 16px; }
    .controls { display: flex; flex-wrap: wrap; gap: 10px; align-items: end; margin-bottom: 16px; }
    .controls label { display: flex; flex-direction: column; gap: 4px; color: var(--muted); font-size: 0.8rem; }
    .controls input, .controls select, .controls button {
      background: #1b2438; border: 1px solid #334155; color: var(--text);
      border-radius: 8px; padding: 7px 9px; font-size: 0.9rem;
    }
    .controls button { cursor: pointer; font-weight: 600; }
    .controls button:hover { border-color: var(--accent); }
    .grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(170px, 1fr)); gap: 12px; margin-bottom: 16px; }
    .card {
      background: rgba(18, 26, 43, 0.92);
      border: 1px solid rgba(96, 165, 250, 0.18);
      border-radius: 12px;
      padding: 14px;
      box-shadow: 0 8px 24px rgba(0, 0, 0, 0.25);
    }
    .label { color: var(--muted); font-size: 0.82rem; margin-bottom: 8px; }
    .value { font-size: 1.35rem; font-weight: 700; }
    .hint { color: var(--muted); font-size: 0.75rem; margin-top: 6px; }
    .good { color: var(--good); }
    .bad { color: var(--bad); }
    .section-title { margin: 20px 0 10px; font-size: 1.05rem; color: var(--accent); }
    table { width: 100%; border-collapse: collapse; font-size: 0.86rem; }
    th, td { padding: 8px; border-bottom: 1px solid #26324f; text-align: left; }
    th { color: var(--muted); font-weight: 600; }
    tr:hover { background: rgba(96, 165, 250, 0.08); }
    .chart-wrap { height: 260px; }
    canvas { width: 100%; height: 100%; display: block; }
    .pager { display: flex; gap: 10px; align-items: center; margin-top: 10px; color: var(--muted); }
    .pager button { background: #1b2438; border: 1px solid #334155; color: var(--text); border-radius: 8px; padding: 5px 10px; cursor: pointer; }
    .pager button:disabled { opacity: 0.4; cursor: default; }
  </style>
</head>
<body>
  <div class="container">
    <h1>Up or Down Performance</h1>
    <div class="subtitle"><span id="strategyLabel">Loading...</span> &middot; <span id="datasetWindow"></span></div>

    <div class="controls">
      <label>Initial capital<input id="capitalInput" type="text" /></label>
      <label>Bet size<input id="betInput" type="text" /></label>
      <label>Assets
        <select id="assetSelect">
          <option value="both">Both</option>
          <option value="spx">SPX</option>
          <option value="ndx">NDX</option>
        </select>
      </label>
      <label>Top stats source<select id="scenarioSelect"></select></label>
      <button id="applyButton">Apply</button>
    </div>

    <div class="grid" id="kpis"></div>

    <div class="section-title">Equity Curve</div>
    <div class="card chart-wrap"><canvas id="equityChart" width="1100" height="260"></canvas></div>

    <div class="section-title">Monthly Returns</div>
    <div class="card">
      <table>
        <thead><tr><th>Year</th><th>Jan</th><th>Feb</th><th>Mar</th><th>Apr</th><th>May</th><th>Jun</th>
          <th>Jul</th><th>Aug</th><th>Sep</th><th>Oct</th><th>Nov</th><th>Dec</th><th>YTD</th></tr></thead>
        <tbody id="monthlyBody"></tbody>
      </table>
    </div>

    <div class="section-title">Trade Log</div>
    <div class="card">
      <table>
        <thead><tr><th>Date</th><th>Market</th><th>Direction</th><th>Bet Size</th>
          <th>Entry Price</th><th>Result</th><th>P&amp;L</th></tr></thead>
        <tbody id="tradesBody"></tbody>
      </table>
      <div class="pager">
        <button id="prevPage">Prev</button><span id="pageInfo">Page 1 / 1</span><button id="nextPage">Next</button>
      </div>
    </div>

    <div class="section-title">Monte-Carlo (1 year)</div>
    <div class="grid" id="mcSummary"></div>
  </div>

  <script>
    let currentPage = 1;
    let totalPages = 1;

    function fmtUsd(v) {
      if (v === null || v === undefined) return "-";
      return Number(v).toLocaleString("en-US", { style: "currency", currency: "USD" });
    }
    function fmtPct(v, digits = 2) { return v === null || v === undefined ? "-" : `${Number(v).toFixed(digits)}%`; }
    function fmtNum(v, digits = 2) { return v === null || v === undefined ? "-" : Number(v).toFixed(digits); }
    function signClass(v) { return v === null || v === undefined ? "" : (v >= 0 ? "good" : "bad"); }

    function kpiCard(label, value, cls = "", hint = "") {
      const hintHtml = hint ? `<div class="hint">${hint}</div>` : "";
      return `<div class="card"><div class="label">${label}</div><div class="value ${cls}">${value}</div>${hintHtml}</div>`;
    }

    function render(summary) {
      const k = summary.kpis;
      const cfg = summary.config;
      document.getElementById("strategyLabel").textContent = summary.strategy_label;
      document.getElementById("datasetWindow").textContent =
        `Dataset window: ${summary.dataset_window.start} to ${summary.dataset_window.end}`;
      document.getElementById("capitalInput").value = cfg.starting_capital;
      document.getElementById("betInput").value = cfg.bet_size;
      document.getElementById("assetSelect").value = cfg.asset_filter;

      const select = document.getElementById("scenarioSelect");
      select.innerHTML = summary.scenarios.map((s) => `<option value="${s.id}">${s.label}</option>`).join("");
      select.value = cfg.scenario;

      const ddHint = k.max_dd_start_date
        ? `${fmtUsd(k.max_drawdown_usd)} from ${k.max_dd_start_date} to ${k.max_dd_end_date} (${fmtNum(k.max_dd_duration_days, 0)} days)`
        : "";
      document.getElementById("kpis").innerHTML = [
        kpiCard(k.return_label, fmtPct(k.return_pct, 1), signClass(k.return_pct)),
        kpiCard("Max Drawdown", k.max_drawdown_pct === null ? "-" : `-${fmtPct(k.max_drawdown_pct, 1)}`, "bad", ddHint),
        kpiCard("Trades", String(k.trades)),
        kpiCard("Win Rate", fmtPct(k.win_rate_pct, 1), "", `${k.wins}/${k.trades}`),
        kpiCard("Profitable Months", `${k.profitable_months}/${k.total_months}`),
        kpiCard("Profit Factor", fmtNum(k.profit_factor)),
        kpiCard("Net Profit", fmtUsd(k.net_pnl), signClass(k.net_pnl), fmtPct(k.net_profit_pct, 1)),
        kpiCard("Ending Equity", fmtUsd(k.ending_equity), "", `from ${fmtUsd(k.starting_equity)}`),
      ].join("");

      document.getElementById("monthlyBody").innerHTML = summary.monthly.length
        ? summary.monthly.map((y) => `<tr><td>${y.year}</td>${
            y.months.map((m) => `<td class="${signClass(m)}">${m === null ? "-" : fmtPct(m, 1)}</td>`).join("")
          }<td class="${signClass(y.ytd_pct)}">${fmtPct(y.ytd_pct, 1)}</td></tr>`).join("")
        : "<tr><td colspan='14'>No monthly data</td></tr>";

      const page = summary.trade_log;
      currentPage = page.page;
      totalPages = page.total_pages;
      document.getElementById("tradesBody").innerHTML = page.rows.length
        ? page.rows.map((t) => `<tr>
            <td>${t.date || "-"}</td>
            <td>${t.market || "-"}</td>
            <td>${t.direction || "-"}</td>
            <td>${fmtUsd(t.bet_size_usd)}</td>
            <td>${t.entry_price === null ? "-" : Number(t.entry_price).toFixed(3)}</td>
            <td class="${t.result === "Win" ? "good" : t.result === "Loss" ? "bad" : ""}">${t.result}</td>
            <td class="${signClass(t.pnl_usd)}">${fmtUsd(t.pnl_usd)}</td>
          </tr>`).join("")
        : "<tr><td colspan='7'>No trades in window</td></tr>";
      document.getElementById("pageInfo").textContent = `Page ${currentPage} / ${totalPages}`;
      document.getElementById("prevPage").disabled = currentPage <= 1;
      document.getElementById("nextPage").disabled = currentPage >= totalPages;

      drawEquityChart(summary.equity.values);
    }

    function renderMonteCarlo(mc) {
      const s = mc.summary;
      const p = mc.path_stats;
      document.getElementById("mcSummary").innerHTML = [
        kpiCard("Median Return", fmtPct(s.median_return_pct, 1)),
        kpiCard("5th Percentile", fmtPct(s.p05_return_pct, 1)),
        kpiCard("95th Percentile", fmtPct(s.p95_return_pct, 1)),
        kpiCard("Probability of Loss", fmtPct(s.probability_loss_pct, 1)),
        kpiCard(`Path ${p.path_key} return`, p.status === "ok" ? fmtPct(p.return_pct) : p.status,
          "", `${p.days_used} days used`),
      ].join("");
    }

    function drawEquityChart(values) {
      const canvas = document.getElementById("equityChart");
      const ctx = canvas.getContext("2d");
      const width = canvas.width;
      const height = canvas.height;
      ctx.clearRect(0, 0, width, height);
      ctx.fillStyle = "#0f1626";
      ctx.fillRect(0, 0, width, height);

      const points = (values || []).filter((v) => v !== null);
      if (points.length < 2) {
        ctx.fillStyle = "#94a3b8";
        ctx.font = "14px sans-serif";
        ctx.fillText("Not enough equity data", 20, 28);
        return;
      }

      const maxVal = Math.max(...points);
      const minVal = Math.min(...points);
      const span = Math.max(1, maxVal - minVal);
      const leftPad = 70, rightPad = 16, topPad = 16, bottomPad = 20;
      const innerW = width - leftPad - rightPad;
      const innerH = height - topPad - bottomPad;

      ctx.strokeStyle = "#26d07c";
      ctx.lineWidth = 2;
      ctx.beginPath();
      points.forEach((v, i) => {
        const x = leftPad + (i / (points.length - 1)) * innerW;
        const y = topPad + innerH - ((v - minVal) / span) * innerH;
        if (i === 0) ctx.moveTo(x, y); else ctx.lineTo(x, y);
      });
      ctx.stroke();

      ctx.fillStyle = "#94a3b8";
      ctx.font = "11px sans-serif";
      ctx.fillText(fmtUsd(maxVal), 4, topPad + 10);
      ctx.fillText(fmtUsd(minVal), 4, topPad + innerH);
    }

    async function getJson(url) {
      const res = await fetch(url);
      if (!res.ok) throw new Error(`HTTP ${res.status}`);
      return res.json();
    }

    async function loadSummary(page = currentPage) {
      try {
        render(await getJson(`/api/summary?page=${page}`));
      } catch (err) {
        document.getElementById("strategyLabel").textContent = `Dashboard error: ${err.message}`;
      }
    }

    async function applySizing() {
      const params = new URLSearchParams({
        starting_capital: document.getElementById("capitalInput").value,
        bet_size: document.getElementById("betInput").value,
        asset_filter: document.getElementById("assetSelect").value,
      });
      try {
        render(await getJson(`/api/sizing?${params}`));
      } catch (err) {
        document.getElementById("strategyLabel").textContent = `Dashboard error: ${err.message}`;
      }
    }

    async function selectScenario() {
      const scenario = document.getElementById("scenarioSelect").value;
      render(await getJson(`/api/summary?page=1&scenario=${encodeURIComponent(scenario)}`));
    }

    document.getElementById("applyButton").addEventListener("click", applySizing);
    document.getElementById("assetSelect").addEventListener("change", applySizing);
    document.getElementById("scenarioSelect").addEventListener("change", selectScenario);
    document.getElementById("prevPage").addEventListener("click", () => loadSummary(currentPage - 1));
    document.getElementById("nextPage").addEventListener("click", () => loadSummary(currentPage + 1));

    loadSummary(1);
    getJson("/api/monte-carlo").then(renderMonteCarlo).catch(() => {});
  </script>
</body>
</html>
"""


class DashboardHTTPServer(ThreadingHTTPServer):
    """HTTP server carrying the dashboard session for request handlers."""

    def __init__(self, server_address: tuple[str, int], session: DashboardSession) -> None:
        super().__init__(server_address, DashboardHandler)
        self.session = session
        self.lock = threading.Lock()


def _first(query: dict[str, list[str]], key: str, default: Any = None) -> Any:
    values = query.get(key)
    return values[0] if values else default


def _page_number(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 1


class DashboardHandler(BaseHTTPRequestHandler):
    """Serve the dashboard page and JSON API."""

    server: DashboardHTTPServer

    def do_GET(self) -> None:  # noqa: N802 (BaseHTTPRequestHandler signature)
        parts = urlsplit(self.path)
        query = parse_qs(parts.query)
        session = self.server.session

        if parts.path == "/":
            self._send_html(DASHBOARD_HTML)
            return

        if parts.path == "/api/summary":
            with self.server.lock:
                if "scenario" in query:
                    session.select_scenario(_first(query, "scenario"))
                payload = session.summary_payload(_page_number(_first(query, "page", 1)))
            self._send_json(payload)
            return

        if parts.path == "/api/sizing":
            with self.server.lock:
                session.apply_sizing(
                    _first(query, "starting_capital"),
                    _first(query, "bet_size"),
                    _first(query, "asset_filter"),
                )
                payload = session.summary_payload(1)
            self._send_json(payload)
            return

        if parts.path == "/api/monte-carlo":
            with self.server.lock:
                payload = session.monte_carlo_payload(
                    _first(query, "path", "p50"),
                    _first(query, "start"),
                    _first(query, "end"),
                )
            self._send_json(payload)
            return

        self.send_error(HTTPStatus.NOT_FOUND, "Not Found")

    def log_message(self, fmt: str, *args: Any) -> None:
        logger.debug("web-dashboard: {}", fmt % args)

    def _send_html(self, body: str) -> None:
        raw = body.encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def _send_json(self, payload: dict[str, Any]) -> None:
        raw = json.dumps(payload, allow_nan=False).encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-store")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def run_web_dashboard(
    session: DashboardSession,
    host: str = "127.0.0.1",
    port: int = 8787,
    open_browser: bool = True,
) -> None:
    """Run the local web dashboard until interrupted."""
    server = DashboardHTTPServer((host, port), session)
    url = f"http://{host}:{port}"

    logger.info(f"Starting web dashboard at {url}")

    if open_browser:
        threading.Thread(target=lambda: webbrowser.open(url), daemon=True).start()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Web dashboard stopped by user")
    finally:
        server.server_close()
