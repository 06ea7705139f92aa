#!/usr/bin/env python3
"""
Certificate & Uptime Monitor - Main Entry Point.

Usage:
    python main.py cert list
    python main.py cert show <domain>
    python main.py cert add <domain> [--no-auto-renew] [--threshold N] [--no-check]
    python main.py cert update <domain> [--auto-renew|--no-auto-renew] [--threshold N]
    python main.py cert remove <domain>
    python main.py cert check <domain> [domains...]
    python main.py cert check-all
    python main.py cert discover
    python main.py cert renew <domain>
    python main.py cert generate <domain> [--email E]
    python main.py cert ack <domain> [--actor NAME]
    python main.py cert summary
    python main.py uptime list
    python main.py uptime add <url> [--name N]
    python main.py uptime remove <id|url>
    python main.py uptime check [<id|url>]
    python main.py uptime ack <id|url> [--actor NAME]
    python main.py uptime history <id|url> [--hours H]
    python main.py history export [--hours H] [--target T] [--kind K] [--output file.csv]
    python main.py serve [--host H] [--port P] [--no-scheduler]
"""

import argparse
import getpass
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

from config.settings import LOG_FORMAT, LOG_LEVEL
from sslcert.errors import MonitorError
from tracker.check_log import CheckKind
from web.services import build_services


def _services(args):
    return build_services(data_dir=args.data_dir)


def _default_actor() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "cli"


def _window(hours: float):
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def _print_record(record):
    days = "-" if record.days_until_expiry is None else f"{record.days_until_expiry:4d}"
    alarm = " ALARM" if record.alarm_pending else ""
    print(f"  [{record.status.value:13s}] {record.domain:35s} {days:>5s} days{alarm}")
    if record.last_error:
        print(f"      error: {record.last_error}")


def _print_renewal(result):
    if result.success:
        reloaded = "reloaded" if result.reloaded else "not reloaded"
        print(f"OK - {result.domain} ({result.cert_name or 'new certificate'}, web server {reloaded})")
        if result.error:
            print(f"  warning: {result.error}")
    else:
        print(f"FAILED - {result.domain}: {result.error}")


# ============================================================
# Certificate Commands
# ============================================================

def cmd_cert_list(args):
    """List monitored certificates."""
    records = _services(args).certificate_monitor.list_records()
    if not records:
        print("No domains monitored.")
        return 0
    for record in records:
        _print_record(record)
    return 0


def cmd_cert_show(args):
    record = _services(args).certificate_monitor.get(args.domain)
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def cmd_cert_add(args):
    """Start monitoring a domain."""
    record = _services(args).certificate_monitor.add_domain(
        args.domain,
        auto_renew=args.auto_renew,
        renewal_threshold=args.threshold,
        check=not args.no_check,
    )
    _print_record(record)
    return 0


def cmd_cert_update(args):
    record = _services(args).certificate_monitor.update_settings(
        args.domain, auto_renew=args.auto_renew, renewal_threshold=args.threshold,
    )
    print(f"{record.domain}: auto_renew={record.auto_renew} threshold={record.renewal_threshold}")
    return 0


def cmd_cert_remove(args):
    if _services(args).certificate_monitor.remove(args.domain):
        print(f"Removed: {args.domain}")
        return 0
    print(f"Not monitored: {args.domain}")
    return 1


def cmd_cert_check(args):
    """Check certificates for one or more domains now."""
    monitor = _services(args).certificate_monitor
    for domain in args.domains:
        _print_record(monitor.check(domain))
    return 0


def cmd_cert_check_all(args):
    """Discover domains and check everything."""
    summary = _services(args).certificate_monitor.run_once()
    print(json.dumps(summary, indent=2))
    return 1 if summary["failed"] else 0


def cmd_cert_discover(args):
    summary = _services(args).certificate_monitor.discover()
    for domain in summary["discovered"]:
        print(f"  {domain}")
    print(f"{len(summary['discovered'])} domain(s) discovered, {summary['checked']} checked")
    return 0


def cmd_cert_renew(args):
    result = _services(args).certificate_monitor.renew(args.domain)
    _print_renewal(result)
    return 0 if result.success else 1


def cmd_cert_generate(args):
    result = _services(args).certificate_monitor.generate(args.domain, email=args.email or "")
    _print_renewal(result)
    return 0 if result.success else 1


def cmd_cert_ack(args):
    record = _services(args).certificate_monitor.acknowledge(args.domain, args.actor or _default_actor())
    print(f"Alarm acknowledged for {record.domain} by {record.acknowledged_by}")
    return 0


def cmd_cert_summary(args):
    print(json.dumps(_services(args).certificate_monitor.summary(), indent=2))
    return 0


# ============================================================
# Uptime Commands
# ============================================================

def cmd_uptime_list(args):
    monitors = _services(args).uptime_monitor.list_monitors()
    if not monitors:
        print("No uptime monitors.")
        return 0
    for m in monitors:
        state = "DOWN" if m.is_down else ("UP" if m.last_checked_at else "NEW")
        alarm = " ALARM" if m.alarm_pending else ""
        print(f"  {m.monitor_id}  [{state:4s}] {m.url}{alarm}")
    return 0


def cmd_uptime_add(args):
    monitor = _services(args).uptime_monitor.add_target(args.url, name=args.name or "")
    print(f"Monitoring {monitor.url} (id {monitor.monitor_id})")
    return 0


def cmd_uptime_remove(args):
    if _services(args).uptime_monitor.remove(args.ref):
        print(f"Removed: {args.ref}")
        return 0
    print(f"Not found: {args.ref}")
    return 1


def cmd_uptime_check(args):
    monitor = _services(args).uptime_monitor
    if args.ref:
        m = monitor.check_one(args.ref)
        state = "DOWN" if m.is_down else "UP"
        print(f"[{state}] {m.url} status={m.last_status_code} {m.last_response_time_ms}ms")
        return 1 if m.is_down else 0
    summary = monitor.run_once()
    print(json.dumps(summary, indent=2))
    return 1 if summary["down"] else 0


def cmd_uptime_ack(args):
    m = _services(args).uptime_monitor.acknowledge(args.ref, args.actor or _default_actor())
    print(f"Alarm acknowledged for {m.url} by {m.acknowledged_by}")
    return 0


def cmd_uptime_history(args):
    history = _services(args).uptime_monitor.history(args.ref, start=_window(args.hours))
    pct = history["uptime_percentage"]
    print(f"{history['monitor']['url']}: {'n/a' if pct is None else f'{pct:.2f}%'} "
          f"over {len(history['events'])} check(s) in the last {args.hours:g}h")
    return 0


# ============================================================
# History Commands
# ============================================================

def cmd_history_export(args):
    """Export check history to CSV."""
    output = _services(args).check_log.export_csv(
        start=_window(args.hours),
        target=args.target,
        kind=CheckKind(args.kind) if args.kind else None,
    )
    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(output)
        print(f"Exported to {args.output}")
    else:
        sys.stdout.write(output)
    return 0


# ============================================================
# Server
# ============================================================

def cmd_serve(args):
    """Run the JSON API with the background scheduler."""
    from web import create_app
    from web.services import build_scheduler

    services = _services(args)
    scheduler = build_scheduler(services)
    app = create_app(services=services, scheduler=scheduler)
    if not args.no_scheduler:
        scheduler.start()
    try:
        app.run(host=args.host, port=args.port)
    finally:
        scheduler.stop()
    return 0


# ============================================================
# Parser
# ============================================================

def _add_renew_flags(parser):
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--auto-renew", dest="auto_renew", action="store_true", default=None)
    group.add_argument("--no-auto-renew", dest="auto_renew", action="store_false")
    parser.add_argument("--threshold", type=int, help="Renewal threshold in days")


def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Certificate lifecycle and HTTP uptime monitor"
    )
    parser.add_argument("--data-dir", help="Override the data directory")
    subparsers = parser.add_subparsers(dest="module", help="Module")

    # --- Certificate commands ---
    cert_parser = subparsers.add_parser("cert", help="Certificate monitoring")
    cert_sub = cert_parser.add_subparsers(dest="action")

    cl = cert_sub.add_parser("list", help="List monitored domains")
    cl.set_defaults(func=cmd_cert_list)

    cs = cert_sub.add_parser("show", help="Show one record as JSON")
    cs.add_argument("domain")
    cs.set_defaults(func=cmd_cert_show)

    ca = cert_sub.add_parser("add", help="Add a domain to monitoring")
    ca.add_argument("domain")
    _add_renew_flags(ca)
    ca.add_argument("--no-check", action="store_true", help="Do not check immediately")
    ca.set_defaults(func=cmd_cert_add)

    cu = cert_sub.add_parser("update", help="Change renewal settings")
    cu.add_argument("domain")
    _add_renew_flags(cu)
    cu.set_defaults(func=cmd_cert_update)

    cr = cert_sub.add_parser("remove", help="Stop monitoring a domain")
    cr.add_argument("domain")
    cr.set_defaults(func=cmd_cert_remove)

    cc = cert_sub.add_parser("check", help="Check domains now")
    cc.add_argument("domains", nargs="+")
    cc.set_defaults(func=cmd_cert_check)

    cca = cert_sub.add_parser("check-all", help="Discover and check every domain")
    cca.set_defaults(func=cmd_cert_check_all)

    cd = cert_sub.add_parser("discover", help="Discover domains and check them")
    cd.set_defaults(func=cmd_cert_discover)

    cn = cert_sub.add_parser("renew", help="Renew a certificate with certbot")
    cn.add_argument("domain")
    cn.set_defaults(func=cmd_cert_renew)

    cg = cert_sub.add_parser("generate", help="Issue a first certificate with certbot")
    cg.add_argument("domain")
    cg.add_argument("--email", help="ACME account email")
    cg.set_defaults(func=cmd_cert_generate)

    ck = cert_sub.add_parser("ack", help="Acknowledge a certificate alarm")
    ck.add_argument("domain")
    ck.add_argument("--actor", help="Who acknowledges (default: current user)")
    ck.set_defaults(func=cmd_cert_ack)

    csum = cert_sub.add_parser("summary", help="Status counts")
    csum.set_defaults(func=cmd_cert_summary)

    # --- Uptime commands ---
    up_parser = subparsers.add_parser("uptime", help="HTTP uptime monitoring")
    up_sub = up_parser.add_subparsers(dest="action")

    ul = up_sub.add_parser("list", help="List uptime monitors")
    ul.set_defaults(func=cmd_uptime_list)

    ua = up_sub.add_parser("add", help="Monitor a URL")
    ua.add_argument("url")
    ua.add_argument("--name")
    ua.set_defaults(func=cmd_uptime_add)

    ur = up_sub.add_parser("remove", help="Stop monitoring a URL")
    ur.add_argument("ref", help="Monitor id or URL")
    ur.set_defaults(func=cmd_uptime_remove)

    uc = up_sub.add_parser("check", help="Probe one monitor, or all when omitted")
    uc.add_argument("ref", nargs="?", help="Monitor id or URL")
    uc.set_defaults(func=cmd_uptime_check)

    uk = up_sub.add_parser("ack", help="Acknowledge an uptime alarm")
    uk.add_argument("ref", help="Monitor id or URL")
    uk.add_argument("--actor", help="Who acknowledges (default: current user)")
    uk.set_defaults(func=cmd_uptime_ack)

    uh = up_sub.add_parser("history", help="Uptime percentage for a window")
    uh.add_argument("ref", help="Monitor id or URL")
    uh.add_argument("--hours", type=float, default=24.0)
    uh.set_defaults(func=cmd_uptime_history)

    # --- History commands ---
    hist_parser = subparsers.add_parser("history", help="Check history")
    hist_sub = hist_parser.add_subparsers(dest="action")

    he = hist_sub.add_parser("export", help="Export check history as CSV")
    he.add_argument("--hours", type=float, default=24.0)
    he.add_argument("--target", help="Only this domain or URL")
    he.add_argument("--kind", choices=[k.value for k in CheckKind])
    he.add_argument("--output", help="Output file path (default: stdout)")
    he.set_defaults(func=cmd_history_export)

    # --- Server ---
    serve = subparsers.add_parser("serve", help="Run the API and scheduler")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--no-scheduler", action="store_true")
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.module:
        parser.print_help()
        sys.exit(1)

    if not hasattr(args, "func"):
        parser.parse_args([args.module, "--help"])
        sys.exit(1)

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    try:
        code = args.func(args)
    except (MonitorError, ValueError) as exc:
        print(f"Error: {getattr(exc, 'message', exc)}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
