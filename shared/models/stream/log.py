from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class LogKind(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"
    success = "success"


class LogEntry(BaseModel):
    """Single task log line; immutable once received."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    kind: LogKind = Field(alias="type")
    message: str
    timestamp: datetime
    details: Optional[Dict[str, Any]] = None
