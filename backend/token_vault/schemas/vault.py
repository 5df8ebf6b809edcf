"""Token vault job summaries and key inventory schemas."""
from pydantic import BaseModel

from token_vault.exceptions import PartialBatchFailure
from token_vault.utils.keys import KeyStatus


class RecordError(BaseModel):
    record_id: str
    reason: str


class _JobSummary(BaseModel):
    total: int = 0
    skipped: int = 0
    errors: list[RecordError] = []

    def add_error(self, record_id, reason: str) -> None:
        self.errors.append(RecordError(record_id=str(record_id), reason=reason))

    def raise_for_errors(self, job: str) -> None:
        if self.errors:
            raise PartialBatchFailure(job, self.errors)


class MigrationSummary(_JobSummary):
    migrated: int = 0


class RotationSummary(_JobSummary):
    rotated: int = 0
    failed: int = 0
    key_version: int | None = None


class KeyVersionInfo(BaseModel):
    version: int
    status: KeyStatus
    records: int = 0


class KeyInventory(BaseModel):
    active_version: int | None = None
    keys: list[KeyVersionInfo] = []
    unresolvable_records: dict[int, int] = {}
    legacy_records: int = 0
