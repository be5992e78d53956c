from preferences import ViewPreferences, load_preferences, save_preferences
from visibility import VisibilityOptions


def test_missing_file_gives_defaults(tmp_path):
    prefs = load_preferences(tmp_path / "absent.json")
    assert prefs == ViewPreferences()
    assert prefs.visibility() == VisibilityOptions(hide_old=True, hide_paid=False)


def test_preferences_roundtrip(tmp_path):
    path = tmp_path / "nested" / "prefs.json"
    prefs = ViewPreferences(
        hide_old_data=False, hide_paid=True, dismissed_bill_changes=["tpl-1"]
    )
    save_preferences(prefs, path)

    assert '"dismissedBillChanges"' in path.read_text(encoding="utf-8")
    assert load_preferences(path) == prefs


def test_invalid_file_falls_back_to_defaults(tmp_path, caplog):
    path = tmp_path / "prefs.json"
    path.write_text('{"hidePaid": "sometimes"}', encoding="utf-8")

    assert load_preferences(path) == ViewPreferences()
    assert "preferences_invalid" in caplog.text
