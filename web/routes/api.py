"""REST API v1: JSON endpoints for operating the certificate and uptime monitors."""

from datetime import datetime, timedelta, timezone

from flask import Blueprint, Response, jsonify, request, send_file

from sslcert.errors import (
    PassInProgress,
    PersistenceFailure,
    RecordNotFound,
    ToolUnavailable,
)
from tracker.check_log import CheckKind
from web.services import (
    get_certificate_monitor,
    get_check_log,
    get_scheduler,
    get_services,
    get_uptime_monitor,
)

bp = Blueprint("api", __name__)

DEFAULT_WINDOW_HOURS = 24


def _error(message, status=400):
    return jsonify({"error": message}), status


@bp.errorhandler(RecordNotFound)
def _record_not_found(exc):
    return _error(exc.message, 404)


@bp.errorhandler(ToolUnavailable)
def _tool_unavailable(exc):
    return _error(exc.message, 503)


@bp.errorhandler(PassInProgress)
def _pass_in_progress(exc):
    return _error(exc.message, 409)


@bp.errorhandler(PersistenceFailure)
def _persistence_failure(exc):
    return _error(exc.message, 500)


@bp.errorhandler(ValueError)
def _bad_value(exc):
    return _error(str(exc), 400)


def _actor() -> str:
    data = request.get_json(silent=True) or {}
    return data.get("actor") or request.headers.get("X-Actor") or "api"


def _parse_bool(value, name):
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValueError(f"{name} must be true or false")


def _parse_window():
    """``since``/``until`` ISO timestamps, or ``hours`` back from now (default 24)."""
    now = datetime.now(timezone.utc)

    def parse(name):
        value = request.args.get(name)
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"Invalid {name}: {value}") from None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    since, until = parse("since"), parse("until")
    if since is None:
        try:
            hours = float(request.args.get("hours", DEFAULT_WINDOW_HOURS))
        except ValueError:
            raise ValueError(f"Invalid hours: {request.args.get('hours')}") from None
        since = (until or now) - timedelta(hours=hours)
    if until and until < since:
        raise ValueError("until must not be before since")
    return since, until


def _parse_kind():
    kind = request.args.get("kind")
    if not kind:
        return None
    try:
        return CheckKind(kind)
    except ValueError:
        raise ValueError(f"Invalid kind: {kind}") from None


def _renewal_response(result):
    return jsonify(result.to_dict()), 200 if result.success else 502


# ── Certificates ─────────────────────────────────────────────────────

@bp.route("/certificates")
def list_certificates():
    return jsonify([r.to_dict() for r in get_certificate_monitor().list_records()])


@bp.route("/certificates/summary")
def certificate_summary():
    return jsonify(get_certificate_monitor().summary())


@bp.route("/certificates/<domain>")
def get_certificate(domain):
    return jsonify(get_certificate_monitor().get(domain).to_dict())


@bp.route("/certificates", methods=["POST"])
def add_certificate():
    data = request.get_json(silent=True) or {}
    domain = (data.get("domain") or "").strip()
    if not domain:
        return _error("Missing required field: domain")
    record = get_certificate_monitor().add_domain(
        domain,
        auto_renew=_parse_bool(data.get("auto_renew"), "auto_renew"),
        renewal_threshold=data.get("renewal_threshold"),
        check=_parse_bool(data.get("check", True), "check"),
    )
    return jsonify(record.to_dict()), 201


@bp.route("/certificates/<domain>", methods=["PUT"])
def update_certificate(domain):
    data = request.get_json(silent=True) or {}
    record = get_certificate_monitor().update_settings(
        domain,
        auto_renew=_parse_bool(data.get("auto_renew"), "auto_renew"),
        renewal_threshold=data.get("renewal_threshold"),
    )
    return jsonify(record.to_dict())


@bp.route("/certificates/<domain>", methods=["DELETE"])
def delete_certificate(domain):
    if not get_certificate_monitor().remove(domain):
        return _error("Certificate not found", 404)
    return jsonify({"deleted": domain})


@bp.route("/certificates/<domain>/check", methods=["POST"])
def check_certificate(domain):
    return jsonify(get_certificate_monitor().check(domain).to_dict())


@bp.route("/certificates/check-all", methods=["POST"])
def check_all_certificates():
    return jsonify(get_certificate_monitor().run_once())


@bp.route("/certificates/discover", methods=["POST"])
def discover_certificates():
    return jsonify(get_certificate_monitor().discover())


@bp.route("/certificates/<domain>/renew", methods=["POST"])
def renew_certificate(domain):
    return _renewal_response(get_certificate_monitor().renew(domain))


@bp.route("/certificates/<domain>/generate", methods=["POST"])
def generate_certificate(domain):
    data = request.get_json(silent=True) or {}
    return _renewal_response(
        get_certificate_monitor().generate(domain, email=data.get("email", ""))
    )


@bp.route("/certificates/<domain>/acknowledge", methods=["POST"])
def acknowledge_certificate(domain):
    return jsonify(get_certificate_monitor().acknowledge(domain, _actor()).to_dict())


# ── Uptime ───────────────────────────────────────────────────────────

@bp.route("/uptime")
def list_uptime_monitors():
    return jsonify([m.to_dict() for m in get_uptime_monitor().list_monitors()])


@bp.route("/uptime/summary")
def uptime_summary():
    return jsonify(get_uptime_monitor().summary())


@bp.route("/uptime", methods=["POST"])
def add_uptime_monitor():
    data = request.get_json(silent=True) or {}
    url = (data.get("url") or "").strip()
    if not url:
        return _error("Missing required field: url")
    monitor = get_uptime_monitor().add_target(url, name=data.get("name", ""))
    return jsonify(monitor.to_dict()), 201


@bp.route("/uptime/check-all", methods=["POST"])
def check_all_uptime():
    return jsonify(get_uptime_monitor().run_once())


@bp.route("/uptime/<monitor_id>")
def get_uptime_monitor_record(monitor_id):
    return jsonify(get_uptime_monitor().get(monitor_id).to_dict())


@bp.route("/uptime/<monitor_id>", methods=["DELETE"])
def delete_uptime_monitor(monitor_id):
    if not get_uptime_monitor().remove(monitor_id):
        return _error("Uptime monitor not found", 404)
    return jsonify({"deleted": monitor_id})


@bp.route("/uptime/<monitor_id>/check", methods=["POST"])
def check_uptime(monitor_id):
    return jsonify(get_uptime_monitor().check_one(monitor_id).to_dict())


@bp.route("/uptime/<monitor_id>/acknowledge", methods=["POST"])
def acknowledge_uptime(monitor_id):
    return jsonify(get_uptime_monitor().acknowledge(monitor_id, _actor()).to_dict())


@bp.route("/uptime/<monitor_id>/history")
def uptime_history(monitor_id):
    since, until = _parse_window()
    limit = request.args.get("limit", type=int)
    return jsonify(get_uptime_monitor().history(monitor_id, start=since, end=until, limit=limit))


@bp.route("/uptime/<monitor_id>/snapshot")
def uptime_snapshot(monitor_id):
    monitor = get_uptime_monitor().get(monitor_id)
    if not monitor.last_snapshot_path:
        return _error("No snapshot recorded", 404)
    path = get_services().snapshots.resolve(monitor.last_snapshot_path)
    if not path.is_file():
        return _error("Snapshot file missing", 404)
    return send_file(path, mimetype="text/html")


# ── Check history ────────────────────────────────────────────────────

@bp.route("/history")
def check_history():
    since, until = _parse_window()
    events = get_check_log().query(
        start=since,
        end=until,
        target=request.args.get("target"),
        kind=_parse_kind(),
        limit=request.args.get("limit", type=int),
    )
    return jsonify([e.to_dict() for e in events])


@bp.route("/history/export")
def export_history():
    """Export check history for a time window as CSV."""
    since, until = _parse_window()
    output = get_check_log().export_csv(
        start=since,
        end=until,
        target=request.args.get("target"),
        kind=_parse_kind(),
    )
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return Response(
        output,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename=check_history_{stamp}.csv"},
    )


# ── Scheduler ────────────────────────────────────────────────────────

@bp.route("/scheduler")
def scheduler_status():
    scheduler = get_scheduler()
    if scheduler is None:
        return jsonify({"running": False, "jobs": []})
    return jsonify({"running": scheduler.running, "jobs": scheduler.jobs()})
