"""
Visitor Insight Server - Flask API for the Visitor Insight Engine

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

REST API for:
- Question answering over identification events (with charts)
- Follow-up question suggestions
- Overview headline insight
- Provider status
- Event sourcing (Fingerprint Server API, CSV export import)
"""

import logging
import os
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path

from flask import Flask, request, jsonify
from flask_cors import CORS

from insight_engine import (
    __version__,
    AnalysisOrchestrator,
    AnalysisRequest,
    ChatMessage,
    FollowUpGenerator,
    FollowUpRequest,
    InputError,
    InsightConfig,
    InsightError,
    OverviewInsightGenerator,
    ProviderGateway,
    StatusReporter,
    load_env_file,
    parse_events,
)
from insight_engine.logging_utils import log_request, setup_logging
from insight_engine.rate_limiter import (
    exempt_from_rate_limit,
    get_rate_limit_status,
    init_rate_limiter,
    rate_limit_expensive,
    rate_limit_upstream,
)
from ingestion import FingerprintClient, parse_events_csv

# =============================================================================
# CONFIGURATION
# =============================================================================

# Load .env file before reading configuration
_scripts_dir = Path(__file__).parent
load_env_file(_scripts_dir / ".env")


class Config:
    """Server configuration."""
    MAX_CONTENT_LENGTH = 20 * 1024 * 1024  # 20MB CSV uploads
    ALLOWED_EXTENSIONS = {'csv', 'txt'}

    LOG_LEVEL = os.environ.get("INSIGHT_LOG_LEVEL", "INFO")
    LOG_JSON = os.environ.get("INSIGHT_LOG_JSON", "false").lower() == "true"
    LOG_FILE = os.environ.get("INSIGHT_LOG_FILE") or None


# =============================================================================
# APP SETUP
# =============================================================================

app = Flask(__name__)
app.config.from_object(Config)
CORS(app)

setup_logging(Config.LOG_LEVEL, json_output=Config.LOG_JSON, log_file=Config.LOG_FILE)
logger = logging.getLogger(__name__)

init_rate_limiter(app)

# One gateway per process; the backend is resolved on first use
engine_config = InsightConfig.from_env()
gateway = ProviderGateway(engine_config)
orchestrator = AnalysisOrchestrator(gateway)
followup_generator = FollowUpGenerator(gateway)
overview_generator = OverviewInsightGenerator(gateway)
status_reporter = StatusReporter(gateway)
event_source = FingerprintClient.from_config(engine_config)


# =============================================================================
# UTILITIES
# =============================================================================

def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in Config.ALLOWED_EXTENSIONS


def api_response(data=None, error=None, status=200):
    """Standard API response wrapper."""
    response = {
        "success": error is None,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    if data is not None:
        response["data"] = data
    if error is not None:
        response["error"] = error
    return jsonify(response), status


def require_json(f):
    """Decorator to require JSON body."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not request.is_json:
            return api_response(error="JSON body required", status=400)
        return f(*args, **kwargs)
    return decorated


def error_response(error: InsightError):
    """Render an engine error with its user-facing message."""
    logger.warning(f"Request rejected: {error}", extra={"status_code": error.status_code})
    return api_response(error=error.user_message, status=error.status_code)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InputError("body", "must be a JSON object")
    return payload


# =============================================================================
# HEALTH & INFO
# =============================================================================

@app.route("/api/health", methods=["GET"])
@exempt_from_rate_limit
def health():
    """Health check endpoint."""
    return api_response({
        "status": "healthy",
        "provider": status_reporter.report().to_dict(),
        "event_source_configured": event_source.is_configured,
    })


@app.route("/api/info", methods=["GET"])
@exempt_from_rate_limit
def info():
    """Server info endpoint."""
    return api_response({
        "name": "Visitor Insight Server",
        "version": __version__,
        "endpoints": [
            "/api/health",
            "/api/info",
            "/api/status",
            "/api/analyze",
            "/api/follow-ups",
            "/api/insight",
            "/api/events",
            "/api/events/import",
        ],
        "config": engine_config.to_dict(),
        "rate_limits": get_rate_limit_status(),
    })


@app.route("/api/status", methods=["GET"])
@log_request(logger)
def provider_status():
    """
    Active answer backend.

    Query: probe=1 pings the backend instead of trusting configuration.
    """
    probe = request.args.get("probe", "").lower() in ("1", "true", "yes")
    return api_response(status_reporter.report(probe=probe).to_dict())


# =============================================================================
# ANALYSIS
# =============================================================================

@app.route("/api/analyze", methods=["POST"])
@rate_limit_expensive
@log_request(logger)
@require_json
def analyze():
    """
    Answer a question about an event collection.

    Body: {question, events, priorAnswerContext?, isDeeper?, includeFollowUps?}
    Returns the analysis result; provider failures come back as a
    rule-based answer with success=false, never as an HTTP error.
    """
    try:
        analysis_request = AnalysisRequest.from_dict(_json_body())
    except InsightError as e:
        return error_response(e)

    result = orchestrator.analyze(
        analysis_request.events,
        analysis_request.question,
        prior_context=analysis_request.prior_context,
    )
    data = result.to_dict()
    suggestions = None

    if analysis_request.include_follow_ups:
        suggestions = followup_generator.generate(
            result.answer,
            analysis_request.events,
            is_deeper=analysis_request.is_deeper,
        )
        data["suggestions"] = suggestions

    # Assistant turn for the chat transcript
    data["message"] = ChatMessage.from_result(result, suggestions).to_dict()
    return api_response(data)


@app.route("/api/follow-ups", methods=["POST"])
@rate_limit_expensive
@log_request(logger)
@require_json
def follow_ups():
    """
    Suggest two follow-up questions for an answer.

    Body: {answerText, events?, isDeeper?}
    """
    try:
        followup_request = FollowUpRequest.from_dict(_json_body())
    except InsightError as e:
        return error_response(e)

    questions = followup_generator.generate(
        followup_request.answer_text,
        followup_request.events,
        is_deeper=followup_request.is_deeper,
    )
    return api_response({"questions": questions})


@app.route("/api/insight", methods=["POST"])
@rate_limit_expensive
@log_request(logger)
@require_json
def overview_insight():
    """
    Overview headline and suggested starter question.

    Body: {events}; an empty list yields the no-events headline.
    """
    try:
        events = parse_events(_json_body(), required=False)
    except InsightError as e:
        return error_response(e)

    return api_response(overview_generator.generate(events).to_dict())


# =============================================================================
# EVENTS
# =============================================================================

@app.route("/api/events", methods=["GET"])
@rate_limit_upstream
@log_request(logger)
def list_events():
    """
    Recent identification events from the Fingerprint Server API.

    Query: limit (default 100), startDate, endDate
    """
    try:
        limit_arg = request.args.get("limit", "100")
        if not limit_arg.isdigit() or int(limit_arg) < 1:
            raise InputError("limit", "must be a positive integer")

        events = event_source.search(
            limit=int(limit_arg),
            start_date=request.args.get("startDate") or request.args.get("start_date"),
            end_date=request.args.get("endDate") or request.args.get("end_date"),
        )
    except InsightError as e:
        return error_response(e)

    return api_response({
        "events": [e.to_dict() for e in events],
        "total": len(events),
    })


@app.route("/api/events/import", methods=["POST"])
@rate_limit_upstream
@log_request(logger)
def import_events():
    """
    Parse a dashboard CSV export into events.

    Accepts a multipart upload under "file" or a JSON body {csv}.
    """
    try:
        if "file" in request.files:
            file = request.files["file"]
            if file.filename == "":
                raise InputError("file", "no file selected")
            if not allowed_file(file.filename):
                raise InputError("file", "only .csv exports are supported")
            events = parse_events_csv(file.read())
        elif request.is_json:
            csv_text = _json_body().get("csv")
            if not isinstance(csv_text, str):
                raise InputError("csv", "must be the CSV text of an export")
            events = parse_events_csv(csv_text)
        else:
            raise InputError("file", "upload a CSV file or send JSON {csv}")
    except InsightError as e:
        return error_response(e)

    return api_response({
        "events": [e.to_dict() for e in events],
        "total": len(events),
    })


@app.errorhandler(InsightError)
def handle_insight_error(e):
    """Engine errors that escape an endpoint."""
    return error_response(e)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    port = int(os.environ.get("INSIGHT_PORT", 3001))
    debug = os.environ.get("INSIGHT_DEBUG", "false").lower() == "true"

    print(f"\n[INSIGHT] Server starting on http://localhost:{port}")
    print(f"          Provider: {status_reporter.report().provider.value}")
    print(f"          Event source: {'configured' if event_source.is_configured else 'not configured'}\n")

    app.run(host="0.0.0.0", port=port, debug=debug)
