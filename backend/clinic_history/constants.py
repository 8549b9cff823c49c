"""Shared constants for the history projection."""

from datetime import datetime, timezone

# Status labels used when the source row leaves them empty
DEFAULT_APPOINTMENT_STATUS = "scheduled"
CONSULTATION_ONLY_STATUS = "completed"

# Sort key for encounters without any usable timestamp
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Queue statuses that do not count as a real interaction on their own
PENDING_QUEUE_STATUSES = frozenset({"waiting", "in_progress"})
