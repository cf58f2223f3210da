"""
Edit model for the apple variety grid.

The grid holds a single "currently editing" cell. Cells do not keep any
state of their own; they ask the EditState whether they are being edited
and hand raw input to parse_cell_value when the user saves.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, get_args

from pydantic import ValidationError as PydanticValidationError

from cidery_common.exceptions import ValidationError
from cidery_common.models import AppleVariety, CiderCategory, HarvestWindow, Intensity

# Select editors send this to clear a value
CLEAR_VALUE = "__clear__"

SELECT_OPTIONS: dict[str, tuple[str, ...]] = {
    "cider_category": get_args(CiderCategory),
    "tannin": get_args(Intensity),
    "acid": get_args(Intensity),
    "sugar_brix": get_args(Intensity),
    "harvest_window": get_args(HarvestWindow),
}

EDITABLE_COLUMNS = frozenset(
    {"name", "variety_notes", "is_active", *SELECT_OPTIONS}
)


class UserRole(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


def can_edit(role: UserRole | str) -> bool:
    """Viewers are read-only; everyone else may edit."""
    return UserRole(role) != UserRole.VIEWER


@dataclass(frozen=True)
class CellRef:
    row_id: str
    column_id: str


@dataclass(frozen=True)
class EditState:
    """
    Which cell, if any, is open for editing.

    Transitions return a new state; the caller keeps the current one.
    """

    current: CellRef | None = None

    def start(self, row_id: str, column_id: str, role: UserRole | str) -> "EditState":
        """
        Open a cell for editing, closing any other.

        Viewers and non-editable columns leave the state unchanged.
        """
        if not can_edit(role) or column_id not in EDITABLE_COLUMNS:
            return self
        return EditState(CellRef(row_id, column_id))

    def cancel(self) -> "EditState":
        return EditState()

    def is_editing(self, row_id: str, column_id: str) -> bool:
        return self.current == CellRef(row_id, column_id)


def parse_cell_value(column_id: str, raw: Any) -> Any:
    """
    Turn raw editor input into a typed field value.

    Args:
        column_id: Model field being edited
        raw: Value as entered; text, a select option, or None

    Returns:
        The value to store; None clears an optional field

    Raises:
        ValidationError: If the column is not editable or the value is invalid

    Example:
        >>> parse_cell_value("tannin", " Medium-High ")
        'medium-high'
    """
    if column_id not in EDITABLE_COLUMNS:
        raise ValidationError(f"Column {column_id} is not editable")

    if column_id == "name":
        name = str(raw or "").strip()
        if not name:
            raise ValidationError("Variety name cannot be empty")
        return name

    if column_id == "variety_notes":
        notes = str(raw or "").strip()
        return notes or None

    if column_id == "is_active":
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("true", "yes", "1", "active"):
            return True
        if text in ("false", "no", "0", "inactive", "archived"):
            return False
        raise ValidationError(f"Invalid active flag: {raw!r}")

    if raw is None or raw == CLEAR_VALUE or str(raw).strip() == "":
        return None
    value = str(raw).strip().lower().replace(" ", "-")
    options = SELECT_OPTIONS[column_id]
    if value not in options:
        raise ValidationError(
            f"Invalid {column_id} value {raw!r}; expected one of {', '.join(options)}"
        )
    return value


def build_patch(updates: dict[str, Any]) -> dict[str, Any]:
    """Parse every field in a set of raw updates."""
    return {column_id: parse_cell_value(column_id, raw) for column_id, raw in updates.items()}


def apply_patch(variety: AppleVariety, patch: dict[str, Any]) -> AppleVariety:
    """
    Apply a parsed patch to a variety, keeping its id.

    Raises:
        ValidationError: If the result is not a valid variety
    """
    try:
        return variety.with_patch(patch)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid update for variety {variety.id}: {e}") from e
