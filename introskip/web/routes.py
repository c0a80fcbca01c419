"""HTTP routes exposing detected segments."""

from flask import Blueprint, current_app, jsonify, request

from introskip.config import ConfigStore
from introskip.models import AnalysisMode
from introskip.store import SegmentStore

bp = Blueprint("api", __name__)


def _store() -> SegmentStore:
    return current_app.config["SEGMENT_STORE"]


def _config_store() -> ConfigStore:
    return current_app.config["CONFIG_STORE"]


def _mode_arg(default: AnalysisMode | None) -> AnalysisMode | None:
    raw = request.args.get("mode")
    if raw is None:
        return default
    try:
        return AnalysisMode(raw)
    except ValueError:
        return None


@bp.route("/Episode/<episode_id>/IntroSkipperSegments")
def episode_segments(episode_id: str):
    segments = _store().get_all(episode_id)
    return jsonify({
        mode.value: seg.to_dict() for mode, seg in segments.items() if seg.valid
    })


@bp.route("/Episode/<episode_id>/Timestamps")
def episode_timestamps(episode_id: str):
    mode = _mode_arg(AnalysisMode.INTRODUCTION)
    if mode is None:
        return jsonify({"error": "Unknown mode"}), 400

    segment = _store().get(episode_id, mode)
    if segment is None or not segment.valid:
        return jsonify({"error": "No segment for episode"}), 404

    config = _config_store().get().auto_skip
    data = segment.to_dict()
    data["ShowSkipPromptAt"] = max(0.0, segment.start - config.show_prompt_adjustment)
    data["HideSkipPromptAt"] = segment.start + config.hide_prompt_adjustment
    return jsonify(data)


@bp.route("/Intros/EraseTimestamps", methods=["POST"])
def erase_timestamps():
    if "mode" in request.args and _mode_arg(None) is None:
        return jsonify({"error": "Unknown mode"}), 400

    store = _store()
    store.clear(_mode_arg(None))
    store.save()
    return "", 204
