from __future__ import annotations

from flask import Blueprint, Response, current_app

bp = Blueprint("metrics", __name__)


@bp.get("/metrics")
def metrics():
    body, content_type = current_app.extensions["herd.metrics"].render()
    return Response(body, content_type=content_type)
