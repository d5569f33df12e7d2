from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .models import Ticket

logger = logging.getLogger(__name__)


class TicketSeedRecord(BaseModel):
    """One incident report as exported by the NOC feed.

    Accepts the feed's column names (``escl_status_last_updated_date_time``,
    ``supervisior``); columns the core does not model are kept in ``details``.
    """

    model_config = ConfigDict(extra="allow")

    tt_number: str = Field(..., min_length=1)
    status: str | None = None
    severity: str | None = None
    event_name: str | None = None
    source_input: str | None = None
    system_rca: str | None = None
    open_time: datetime | None = None
    last_status_update: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("last_status_update", "escl_status_last_updated_date_time"),
    )
    cleared_date: datetime | None = None
    site_id: str | None = None
    site_name: str | None = None
    circle: str | None = None
    cluster: str | None = None
    technician: str | None = None
    supervisor: str | None = Field(default=None, validation_alias=AliasChoices("supervisor", "supervisior"))
    cluster_engineer: str | None = None
    cluster_incharge: str | None = None

    @field_validator("status")
    @classmethod
    def _blank_status_is_unset(cls, value: str | None) -> str | None:
        # The feed exports unacknowledged tickets with an empty status.
        if value is not None and not value.strip():
            return None
        return value

    def to_ticket(self) -> Ticket:
        fields = self.model_dump(exclude=set(self.model_extra or {}))
        return Ticket(**fields, details=dict(self.model_extra or {}))


_SEED_ADAPTER = TypeAdapter(list[TicketSeedRecord])


def parse_seed(payload: str | bytes) -> list[Ticket]:
    return [record.to_ticket() for record in _SEED_ADAPTER.validate_json(payload)]


def load_seed_file(path: str | Path) -> list[Ticket]:
    seed_path = Path(path)
    tickets = parse_seed(seed_path.read_bytes())
    logger.info("Loaded %d seed tickets from %s", len(tickets), seed_path)
    return tickets
