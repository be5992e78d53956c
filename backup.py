"""JSON backup files: ``{entries?, accounts?, templates?, paydayTemplates?}``."""

import json
from typing import Callable, Optional

from pydantic import ValidationError

from models import new_id
from schemas import BackupFile


class InvalidBackupFile(ValueError):
    pass


def parse_backup(content: str) -> BackupFile:
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as exc:
        raise InvalidBackupFile(f"Backup is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise InvalidBackupFile("Invalid backup file format")
    try:
        data = BackupFile.model_validate(raw)
    except ValidationError as exc:
        raise InvalidBackupFile(
            f"Invalid backup file format ({exc.error_count()} errors)"
        ) from exc
    check_backup(data)
    return data


def check_backup(data: BackupFile) -> None:
    if data.entries is None and data.accounts is None and data.templates is None:
        raise InvalidBackupFile("Invalid backup file format")


def dump_backup(data: BackupFile) -> str:
    return json.dumps(data.model_dump(mode="json", by_alias=True), indent=2)


def reassign_ids(
    data: BackupFile, id_factory: Callable[[], str] = new_id
) -> BackupFile:
    """Copy of ``data`` with fresh ids; entry template links follow the
    renamed templates, links to unknown templates are kept verbatim."""
    template_ids: dict[str, str] = {}

    def fresh(old_id: str) -> str:
        new = id_factory()
        template_ids[old_id] = new
        return new

    templates = None
    if data.templates is not None:
        templates = [t.model_copy(update={"id": fresh(t.id)}) for t in data.templates]
    payday_templates = None
    if data.payday_templates is not None:
        payday_templates = [
            t.model_copy(update={"id": fresh(t.id)}) for t in data.payday_templates
        ]
    accounts = None
    if data.accounts is not None:
        accounts = [a.model_copy(update={"id": id_factory()}) for a in data.accounts]

    def relink(template_id: Optional[str]) -> Optional[str]:
        if template_id is None:
            return None
        return template_ids.get(template_id, template_id)

    entries = None
    if data.entries is not None:
        entries = [
            e.model_copy(
                update={"id": id_factory(), "template_id": relink(e.template_id)}
            )
            for e in data.entries
        ]
    return BackupFile(
        entries=entries,
        accounts=accounts,
        templates=templates,
        payday_templates=payday_templates,
    )
