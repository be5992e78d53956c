import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError

from config import get_settings
from schemas import CamelModel
from visibility import VisibilityOptions

logger = logging.getLogger(__name__)


class ViewPreferences(CamelModel):
    hide_old_data: bool = True
    hide_paid: bool = False
    dismissed_bill_changes: list[str] = Field(default_factory=list)

    def visibility(self) -> VisibilityOptions:
        return VisibilityOptions(hide_old=self.hide_old_data, hide_paid=self.hide_paid)


def _resolve(path: Optional[Path]) -> Path:
    return path or get_settings().preferences_path


def load_preferences(path: Optional[Path] = None) -> ViewPreferences:
    target = _resolve(path)
    if not target.exists():
        return ViewPreferences()
    try:
        return ViewPreferences.model_validate_json(target.read_text(encoding="utf-8"))
    except ValidationError as exc:
        logger.warning(f"preferences_invalid: path={target} errors={exc.error_count()}")
        return ViewPreferences()


def save_preferences(prefs: ViewPreferences, path: Optional[Path] = None) -> None:
    target = _resolve(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = prefs.model_dump(mode="json", by_alias=True)
    target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
