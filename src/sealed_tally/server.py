"""Minimal Flask API over the reference poll sequencer.

Endpoints:
- GET /pool -> the cluster's pool public key (hex)
- POST /polls -> create a poll {"poll_id", "question", "authority"}
- GET /polls/<poll_id> -> poll metadata and current sequence
- POST /polls/<poll_id>/votes -> submit a voter-sealed ballot ciphertext
- POST /polls/<poll_id>/reveal -> {"authority": ...} returns {"result": bool}
- GET /polls/<poll_id>/events -> the poll's event log
"""

import logging
from typing import Any, Dict

from flask import Flask, jsonify, request

from . import config
from .contexts import Ciphertext
from .errors import BallotReplayError, StaleTallyError, TallyError
from .sequencer import PollSequencer
from .substrate import LocalCluster

logger = logging.getLogger(__name__)


def create_app(sequencer: PollSequencer = None) -> Flask:
    app = Flask(__name__)
    app.config["SEQUENCER"] = sequencer or PollSequencer(LocalCluster())

    def _sequencer() -> PollSequencer:
        return app.config["SEQUENCER"]

    def _poll_view(poll_id: str) -> Dict[str, Any]:
        record = _sequencer().get(poll_id)
        sequence, _ = _sequencer().snapshot(poll_id)
        return {
            "poll_id": record.poll_id,
            "question": record.question,
            "authority": record.authority,
            "pool": record.context.pool_public_key.hex(),
            "sequence": sequence,
        }

    def _json_body():
        data = request.get_json(silent=True)
        if data is None:
            return {}
        return data if isinstance(data, dict) else None

    @app.errorhandler(KeyError)
    def _unknown_poll(err):
        return jsonify({"error": "unknown poll", "detail": str(err.args[0] if err.args else err)}), 404

    @app.errorhandler(PermissionError)
    def _forbidden(err):
        return jsonify({"error": str(err)}), 403

    @app.errorhandler(BallotReplayError)
    @app.errorhandler(StaleTallyError)
    def _conflict(err):
        return jsonify({"error": type(err).__name__, "detail": str(err)}), 409

    @app.errorhandler(TallyError)
    def _rejected(err):
        logger.warning("rejected request: %s", type(err).__name__)
        return jsonify({"error": type(err).__name__, "detail": str(err)}), 400

    @app.route("/pool", methods=["GET"])
    def pool_key():
        return jsonify({"pool": _sequencer().cluster.public_key.hex()})

    @app.route("/polls", methods=["POST"])
    def create_poll():
        data = _json_body()
        if data is None:
            return jsonify({"error": "request body must be a JSON object"}), 400
        poll_id = data.get("poll_id")
        question = data.get("question", "")
        authority = data.get("authority")
        if not all([isinstance(poll_id, str), isinstance(question, str), isinstance(authority, str)]):
            return jsonify({"error": "missing or invalid fields"}), 400
        try:
            _sequencer().create_poll(poll_id, question, authority)
        except KeyError:
            return jsonify({"error": "poll already exists"}), 409
        return jsonify(_poll_view(poll_id)), 201

    @app.route("/polls/<poll_id>", methods=["GET"])
    def get_poll(poll_id):
        return jsonify(_poll_view(poll_id))

    @app.route("/polls/<poll_id>/votes", methods=["POST"])
    def cast_vote(poll_id):
        data = _json_body()
        if data is None:
            return jsonify({"error": "request body must be a JSON object"}), 400
        ballot = Ciphertext.ballot_from_dict(data.get("ballot"))
        expected = data.get("expected_sequence")
        if expected is not None and not isinstance(expected, int):
            return jsonify({"error": "expected_sequence must be an integer"}), 400
        sequence = _sequencer().cast_vote(poll_id, ballot, expected_sequence=expected)
        return jsonify({"status": "counted", "sequence": sequence}), 201

    @app.route("/polls/<poll_id>/reveal", methods=["POST"])
    def reveal(poll_id):
        data = _json_body()
        if data is None:
            return jsonify({"error": "request body must be a JSON object"}), 400
        authority = data.get("authority")
        if not isinstance(authority, str):
            return jsonify({"error": "missing authority"}), 400
        outcome = _sequencer().reveal(poll_id, authority)
        return jsonify({"poll_id": poll_id, "result": outcome})

    @app.route("/polls/<poll_id>/events", methods=["GET"])
    def events(poll_id):
        return jsonify({"events": _sequencer().events(poll_id)})

    return app


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    create_app().run(host=config.SERVER_HOST, port=config.SERVER_PORT)
