import itertools
import json

import pytest

from backup import InvalidBackupFile, dump_backup, parse_backup, reassign_ids


def _counter():
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


BACKUP = {
    "accounts": [{"id": "acc-1", "name": "Checking", "order": 0}],
    "templates": [
        {
            "id": "tpl-rent",
            "name": "Rent",
            "recurrence": "monthly",
            "day": 1,
            "amounts": {"Checking": "1000"},
        }
    ],
    "paydayTemplates": [
        {"id": "tpl-pay", "name": "Salary", "recurrence": "bi-weekly", "day": 2}
    ],
    "entries": [
        {
            "id": "e1",
            "type": "bill",
            "name": "Rent",
            "month": "Jan '26",
            "date": 1,
            "paid": True,
            "templateId": "tpl-rent",
            "amounts": {"Checking": "1000"},
        },
        {
            "id": "e2",
            "type": "payday",
            "name": "Salary",
            "month": "Jan '26",
            "date": 2,
            "templateId": "tpl-pay",
        },
        {
            "id": "e3",
            "type": "bill",
            "name": "Old",
            "month": "Jan '26",
            "date": 3,
            "templateId": "tpl-gone",
        },
    ],
}


def test_parse_backup_reads_camel_case_file():
    data = parse_backup(json.dumps(BACKUP))

    assert data.accounts[0].name == "Checking"
    assert data.templates[0].recurrence.value == "monthly"
    assert data.payday_templates[0].id == "tpl-pay"
    assert [e.type for e in data.entries] == ["bill", "payday", "bill"]
    assert data.entries[0].paid is True


def test_partial_backup_is_accepted():
    data = parse_backup('{"accounts": []}')
    assert data.accounts == []
    assert data.entries is None


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        "{}",
        '{"paydayTemplates": []}',
        '{"entries": [{"id": "x", "type": "transfer"}]}',
    ],
)
def test_invalid_backup_files(content):
    with pytest.raises(InvalidBackupFile):
        parse_backup(content)


def test_reassign_ids_relinks_entries():
    data = parse_backup(json.dumps(BACKUP))
    fresh = reassign_ids(data, id_factory=_counter())

    assert fresh.templates[0].id == "new-1"
    assert fresh.payday_templates[0].id == "new-2"
    assert fresh.accounts[0].id == "new-3"
    assert [e.id for e in fresh.entries] == ["new-4", "new-5", "new-6"]
    assert [e.template_id for e in fresh.entries] == ["new-1", "new-2", "tpl-gone"]
    # the source backup is left untouched
    assert data.entries[0].id == "e1"


def test_dump_backup_uses_wire_names():
    data = parse_backup(json.dumps(BACKUP))
    dumped = json.loads(dump_backup(data))

    assert set(dumped) == {"entries", "accounts", "templates", "paydayTemplates"}
    assert dumped["entries"][0]["templateId"] == "tpl-rent"
    assert dumped["templates"][0]["amounts"] == {"Checking": "1000"}
