"""Column types that map to JSONB on PostgreSQL and JSON elsewhere."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JsonDocument = JSON().with_variant(JSONB(), "postgresql")
