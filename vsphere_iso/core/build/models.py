from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from vsphere_iso.core.build.artifact import Artifact


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BuildStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    HALTED = "halted"


@dataclass
class Build:
    id: UUID = field(default_factory=uuid4)
    config_path: str = ""
    vm_name: str = ""
    status: BuildStatus = BuildStatus.PENDING

    error: Optional[str] = None
    artifact: Optional[Artifact] = None

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def set_status(self, status: BuildStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        self.updated_at = utc_now()
