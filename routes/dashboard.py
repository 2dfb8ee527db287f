"""Dashboard blueprint."""
from __future__ import annotations

from flask import Blueprint

from routes import json_success, service_error_response
from services.dashboard_service import build_dashboard
from services.errors import TaskFlowError

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


@dashboard_bp.route("", methods=["GET"])
def show_dashboard():
    try:
        data = build_dashboard()
    except TaskFlowError as exc:
        return service_error_response(exc)
    return json_success(dashboard=data)
