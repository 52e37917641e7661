from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

bp = Blueprint("prompts", __name__)


@bp.get("/prompts")
def get_prompts():
    try:
        count = int(request.args.get("count", current_app.config.get("PROMPT_CHOICES_COUNT", 3)))
    except ValueError:
        count = 3

    # Custom prompts: comma separated, or multiple prompts[] query params
    custom: list[str] = []
    if request.args.get("custom"):
        custom.extend([p.strip() for p in request.args.get("custom", "").split(",") if p.strip()])
    custom.extend([p.strip() for p in request.args.getlist("prompts[]") if p.strip()])

    choices = current_app.extensions["herd.lexicon"].choices(count, extra=custom)
    return jsonify({"prompts": choices})
