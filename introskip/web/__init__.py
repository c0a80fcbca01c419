"""Flask application factory for the introskip HTTP API."""

from flask import Flask, jsonify

from introskip.config import ConfigStore
from introskip.store import SegmentStore


def create_app(
    store: SegmentStore | None = None,
    config_store: ConfigStore | None = None,
) -> Flask:
    app = Flask(__name__)
    app.config["SEGMENT_STORE"] = store or SegmentStore()
    app.config["CONFIG_STORE"] = config_store or ConfigStore()

    from introskip.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app
