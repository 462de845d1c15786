"""
Local, per-identity storage for the coach's active-athlete selection.

The selection never leaves this machine; one small JSON file is kept per
signed-in identity under ``{data_dir}/selection/``.
"""

import json
import logging
import re
from pathlib import Path

from ..core.models import ActiveAthleteSelection
from .serializers import ValidationError, dict_to_selection, selection_to_dict

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class SelectionStore:
    """Reads and writes one identity's ActiveAthleteSelection."""

    def __init__(self, data_dir: str | Path, identity: str):
        """
        Initialize the selection store.

        Args:
            data_dir: Base directory for local state
            identity: Signed-in user id the selection belongs to
        """
        if not identity:
            raise ValueError("identity must be non-empty")
        self.identity = identity
        self.path = Path(data_dir) / "selection" / f"{_UNSAFE.sub('_', identity)}.json"

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ActiveAthleteSelection | None:
        """
        Load the stored selection.

        Returns:
            ActiveAthleteSelection, or None if absent or unreadable
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return dict_to_selection(data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning("Ignoring unreadable selection %s: %s", self.path, e)
            return None

    def save(self, selection: ActiveAthleteSelection) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(selection_to_dict(selection), f, indent=2)

    def clear(self) -> None:
        """Delete the stored selection if present."""
        if self.path.exists():
            self.path.unlink()
            logger.debug("Cleared selection for %s", self.identity)
