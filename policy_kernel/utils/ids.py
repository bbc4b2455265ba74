"""
Identifier generation.

Every entity id is ``<prefix>_<uuid4 hex>``: collision-free across
processes and threads without shared counters.
"""

from uuid import uuid4

WORKFLOW_PREFIX = "workflow"
REQUEST_PREFIX = "request"
RULE_PREFIX = "rule"
ALERT_PREFIX = "alert"
MONITOR_PREFIX = "monitor"
EVENT_PREFIX = "event"
SAR_PREFIX = "SAR"


class IdGenerator:
    """Produces prefixed unique ids.  Injected so tests can substitute."""

    def new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid4().hex}"


class SequentialIdGenerator(IdGenerator):
    """Deterministic ids (``workflow_0001``...) for tests and replays."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def new_id(self, prefix: str) -> str:
        n = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = n
        return f"{prefix}_{n:04d}"
