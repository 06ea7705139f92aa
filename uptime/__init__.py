"""
HTTP Uptime Monitoring Module.

Polls registered endpoints serially, keeps a snapshot of every failing
response body, and tracks down/up transitions with a persistent alarm.
"""

from uptime.monitor import UptimeMonitor
from uptime.probe import HttpProbe, ProbeResult
from uptime.snapshots import SnapshotStore

__all__ = ["UptimeMonitor", "HttpProbe", "ProbeResult", "SnapshotStore"]
