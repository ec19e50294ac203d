from updown.dashboard.session import DashboardConfig, DashboardSession
from updown.dashboard.web import run_web_dashboard

__all__ = [
    "DashboardConfig",
    "DashboardSession",
    "run_web_dashboard",
]
