#!/usr/bin/env python3
"""Run the monitor API with its background scheduler."""

import atexit
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from web import create_app
from web.services import build_scheduler, build_services
from config.settings import LOG_FORMAT, LOG_LEVEL, SCHEDULER_ENABLED

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

services = build_services()
scheduler = build_scheduler(services)
app = create_app(services=services, scheduler=scheduler)

if SCHEDULER_ENABLED:
    scheduler.start()
    atexit.register(scheduler.stop)

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
