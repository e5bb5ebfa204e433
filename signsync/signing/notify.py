"""Fire-and-forget outputs: the dashboard feed and outcome counters.

Both go to redis. Neither may affect reconciliation, so every failure is
logged and dropped here.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from signsync.config import settings

logger = logging.getLogger(__name__)

class DashboardNotifier:
    def __init__(self, client: Any, channel: str | None = None, *, enabled: bool = True):
        self.client = client
        self.channel = channel or settings.dashboard_channel
        self.enabled = enabled

    def publish(self, kind: str, data: dict[str, Any]) -> None:
        if not self.enabled or self.client is None:
            return
        payload = json.dumps({"event": kind, "data": data}, default=str)
        try:
            self.client.publish(self.channel, payload)
        except Exception:
            logger.warning("dashboard publish failed: %s", kind)

class RedisMetrics:
    def __init__(self, client: Any, key: str | None = None):
        self.client = client
        self.key = key or settings.metrics_key

    def incr(self, name: str, amount: int = 1) -> None:
        try:
            self.client.hincrby(self.key, name, amount)
        except Exception:
            logger.debug("metric %s dropped", name)

class NullMetrics:
    def incr(self, name: str, amount: int = 1) -> None:
        return None
