"""
Application state shared by the server's tools.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from cidery_common.editing import EditState, apply_patch
from cidery_common.exceptions import CideryCommonError
from cidery_common.write_buffer import UpdateBuffer

from mcp_cidery.config import CideryConfig
from mcp_cidery.store import CideryStore

logger = logging.getLogger(__name__)

MAX_NOTICES = 100


@dataclass(frozen=True)
class Notice:
    """A success or failure message for the user, like a toast."""

    level: Literal["success", "error"]
    message: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class AppState:
    """
    Store, variety edit buffer and pending notices.

    Created once per server and handed to register_tools.
    """

    def __init__(self, store: CideryStore, config: CideryConfig | None = None):
        self.config = config or CideryConfig()
        self.store = store
        self.edit_state = EditState()
        self.notices: deque[Notice] = deque(maxlen=MAX_NOTICES)
        self.variety_updates = UpdateBuffer(
            self._write_variety,
            delay=self.config.edit_flush_delay,
        )

    @classmethod
    def from_config(cls, config: CideryConfig) -> "AppState":
        store = CideryStore.load(config.data_path) if config.data_path else CideryStore()
        return cls(store, config)

    def notify(self, level: Literal["success", "error"], message: str) -> None:
        self.notices.append(Notice(level, message))

    def drain_notices(self) -> list[Notice]:
        notices = list(self.notices)
        self.notices.clear()
        return notices

    async def _write_variety(self, variety_id: str, patch: dict[str, Any]) -> None:
        try:
            variety = apply_patch(self.store.get_variety(variety_id), patch)
            self.store.put_variety(variety)
        except CideryCommonError as e:
            self.notify("error", f"Failed to update variety: {e}")
            raise
        logger.info("Updated variety %s: %s", variety_id, sorted(patch))
        self.notify("success", f"Variety {variety.name} updated successfully")
