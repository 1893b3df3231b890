#!/usr/bin/env python3
"""Web server for running simulator programs over HTTP."""

import sys
import os
import io

from flask import Flask, request, jsonify

# Import loader and simulator from parent directory
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))
from loader import LoadError, load_text  # noqa: E402
from simulator import generate_dump  # noqa: E402

app = Flask(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_INPUT_LEN = int(os.environ.get("ISASIM_MAX_INPUT_LEN", 65536))
MAX_CYCLES = int(os.environ.get("ISASIM_MAX_CYCLES", 100000))

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _failure(errors, status=200):
    return jsonify(
        success=False,
        errors=errors,
        dump="",
        registers=[],
        stderr="",
    ), status

# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.route("/api/health")
def api_health():
    return jsonify(status="ok")


@app.route("/api/run", methods=["POST"])
def api_run():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return _failure(["Request body must be a JSON object"], 400)

    text = data.get("input", "")
    trace = bool(data.get("trace", False))

    if not isinstance(text, str):
        return _failure(["'input' must be a string"], 400)

    if len(text) > MAX_INPUT_LEN:
        return _failure([f"Input exceeds {MAX_INPUT_LEN} character limit"])

    try:
        cpu = load_text(text)
    except LoadError as e:
        return _failure([str(e)])

    # Per-request diagnostics stream, returned as "stderr".
    cap_err = io.StringIO()
    exit_code = cpu.run(trace=trace, max_cycles=MAX_CYCLES, log=cap_err)

    return jsonify(
        success=True,
        errors=[str(cpu.error)] if cpu.error else [],
        dump=generate_dump(cpu),
        registers=cpu.registers,
        stderr=cap_err.getvalue(),
        exit_code=exit_code,
        cycles=cpu.cycles,
        halted=cpu.halted,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
