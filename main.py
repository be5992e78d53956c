import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Response, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from analytics import BillAnalytics, changed_bills
from backup import dump_backup, parse_backup
from database import SessionLocal
from preferences import ViewPreferences, load_preferences, save_preferences
from recurrence import local_today
from scheduler import SchedulerManager
from schemas import (
    Account,
    AccountAmountIn,
    AccountIn,
    AccountReorderIn,
    AnalyticsOut,
    BackupFile,
    BillIn,
    BillTemplate,
    BillTemplateIn,
    DismissChangesIn,
    PaydayIn,
    PaydayTemplate,
    PaydayTemplateIn,
)
from services import (
    AccountService,
    AnalyticsService,
    BackupService,
    BillTemplateService,
    CalendarService,
    EntryService,
    PaydayTemplateService,
)
from visibility import VisibilityOptions, first_upcoming

logger = logging.getLogger(__name__)

app = FastAPI(title="Bill Calendar")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_preferences() -> ViewPreferences:
    return load_preferences()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def _http_error(exc: ValueError) -> HTTPException:
    status = 404 if "not found" in str(exc) else 400
    return HTTPException(status_code=status, detail=str(exc))


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _analytics_dict(row: BillAnalytics) -> dict:
    return _dump(AnalyticsOut.model_validate(row))


@app.get("/api/accounts")
def list_accounts(db: Session = Depends(get_db)):
    return [_dump(account) for account in AccountService(db).list_schemas()]


@app.post("/api/accounts", status_code=201)
def create_account(data: AccountIn, db: Session = Depends(get_db)):
    try:
        account = AccountService(db).create(data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _dump(Account.model_validate(account))


@app.put("/api/accounts/{account_id}")
def rename_account(account_id: str, data: AccountIn, db: Session = Depends(get_db)):
    try:
        account = AccountService(db).rename(account_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _dump(Account.model_validate(account))


@app.delete("/api/accounts/{account_id}", status_code=204)
def delete_account(account_id: str, db: Session = Depends(get_db)):
    try:
        AccountService(db).delete(account_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.post("/api/accounts/reorder")
def reorder_accounts(data: AccountReorderIn, db: Session = Depends(get_db)):
    try:
        accounts = AccountService(db).reorder(data.ids)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return [_dump(Account.model_validate(account)) for account in accounts]


@app.get("/api/templates/bills")
def list_bill_templates(db: Session = Depends(get_db)):
    return [_dump(t) for t in BillTemplateService(db).list_schemas()]


@app.post("/api/templates/bills", status_code=201)
def create_bill_template(data: BillTemplateIn, db: Session = Depends(get_db)):
    template = BillTemplateService(db).create(data)
    return _dump(BillTemplate.model_validate(template))


@app.put("/api/templates/bills/{template_id}")
def update_bill_template(
    template_id: str, data: BillTemplateIn, db: Session = Depends(get_db)
):
    try:
        template = BillTemplateService(db).update(template_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _dump(BillTemplate.model_validate(template))


@app.delete("/api/templates/bills/{template_id}")
def delete_bill_template(template_id: str, db: Session = Depends(get_db)):
    try:
        removed = BillTemplateService(db).delete(template_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"removedEntries": removed}


@app.get("/api/templates/paydays")
def list_payday_templates(db: Session = Depends(get_db)):
    return [_dump(t) for t in PaydayTemplateService(db).list_schemas()]


@app.post("/api/templates/paydays", status_code=201)
def create_payday_template(data: PaydayTemplateIn, db: Session = Depends(get_db)):
    template = PaydayTemplateService(db).create(data)
    return _dump(PaydayTemplate.model_validate(template))


@app.put("/api/templates/paydays/{template_id}")
def update_payday_template(
    template_id: str, data: PaydayTemplateIn, db: Session = Depends(get_db)
):
    try:
        template = PaydayTemplateService(db).update(template_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _dump(PaydayTemplate.model_validate(template))


@app.delete("/api/templates/paydays/{template_id}")
def delete_payday_template(template_id: str, db: Session = Depends(get_db)):
    try:
        removed = PaydayTemplateService(db).delete(template_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"removedEntries": removed}


@app.get("/api/entries")
def list_entries(db: Session = Depends(get_db)):
    return [_dump(entry) for entry in EntryService(db).list_all()]


@app.post("/api/entries/bills", status_code=201)
def create_bill(data: BillIn, db: Session = Depends(get_db)):
    try:
        return _dump(EntryService(db).create_bill(data))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/entries/paydays", status_code=201)
def create_payday(data: PaydayIn, db: Session = Depends(get_db)):
    try:
        return _dump(EntryService(db).create_payday(data))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/entries/bills/{entry_id}")
def update_bill(entry_id: str, data: BillIn, db: Session = Depends(get_db)):
    try:
        return _dump(EntryService(db).update(entry_id, data))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/entries/paydays/{entry_id}")
def update_payday(entry_id: str, data: PaydayIn, db: Session = Depends(get_db)):
    try:
        return _dump(EntryService(db).update(entry_id, data))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/entries/{entry_id}/toggle-paid")
def toggle_paid(entry_id: str, db: Session = Depends(get_db)):
    try:
        return _dump(EntryService(db).toggle_paid(entry_id))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/entries/{entry_id}/amounts/{account}")
def set_entry_amount(
    entry_id: str, account: str, data: AccountAmountIn, db: Session = Depends(get_db)
):
    try:
        return _dump(EntryService(db).set_account_amount(entry_id, account, data.amount))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/entries/{entry_id}/amounts/{account}")
def remove_entry_amount(entry_id: str, account: str, db: Session = Depends(get_db)):
    try:
        return _dump(EntryService(db).remove_account_amount(entry_id, account))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/entries/{entry_id}", status_code=204)
def delete_entry(entry_id: str, db: Session = Depends(get_db)):
    try:
        EntryService(db).delete(entry_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/calendar")
def calendar(
    hide_old: Optional[bool] = None,
    hide_paid: Optional[bool] = None,
    db: Session = Depends(get_db),
    prefs: ViewPreferences = Depends(get_preferences),
):
    options = VisibilityOptions(
        hide_old=prefs.hide_old_data if hide_old is None else hide_old,
        hide_paid=prefs.hide_paid if hide_paid is None else hide_paid,
    )
    today = local_today()
    service = CalendarService(db)
    try:
        rows = service.visible(options, today)
    except ValueError as exc:
        raise _http_error(exc) from exc
    upcoming = first_upcoming(rows, today)
    return {
        "items": [row.as_dict() for row in rows],
        "upcomingId": upcoming.id if upcoming else None,
        "hideOld": options.hide_old,
        "hidePaid": options.hide_paid,
    }


@app.get("/api/calendar/{entry_id}")
def calendar_entry(entry_id: str, db: Session = Depends(get_db)):
    try:
        return CalendarService(db).projected_entry(entry_id).as_dict()
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.get("/api/analytics")
def analytics(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    prefs: ViewPreferences = Depends(get_preferences),
):
    year = year or local_today().year
    rows = AnalyticsService(db).for_year(year)
    return {
        "year": year,
        "items": [_analytics_dict(row) for row in rows],
        "changed": [
            _analytics_dict(row)
            for row in changed_bills(rows, prefs.dismissed_bill_changes)
        ],
    }


@app.post("/api/analytics/dismiss")
def dismiss_changes(
    data: DismissChangesIn, prefs: ViewPreferences = Depends(get_preferences)
):
    merged = list(dict.fromkeys([*prefs.dismissed_bill_changes, *data.template_ids]))
    updated = prefs.model_copy(update={"dismissed_bill_changes": merged})
    save_preferences(updated)
    return _dump(updated)


@app.get("/api/preferences")
def read_preferences(prefs: ViewPreferences = Depends(get_preferences)):
    return _dump(prefs)


@app.put("/api/preferences")
def write_preferences(data: ViewPreferences):
    save_preferences(data)
    return _dump(data)


@app.get("/api/backup")
def export_backup(db: Session = Depends(get_db)):
    return _dump(BackupService(db).export())


@app.post("/api/backup")
def import_backup(
    data: BackupFile, replace: bool = False, db: Session = Depends(get_db)
):
    try:
        counts = BackupService(db).import_data(data, replace=replace)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"imported": counts}


@app.get("/api/backup/download")
def download_backup(db: Session = Depends(get_db)):
    content = dump_backup(BackupService(db).export())
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"bills_backup_{timestamp}.json"
    return StreamingResponse(
        iter([content]),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/backup/upload")
async def upload_backup(
    file: UploadFile = File(...),
    replace: bool = False,
    db: Session = Depends(get_db),
):
    try:
        content = (await file.read()).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Backup must be UTF-8 JSON") from exc
    try:
        data = parse_backup(content)
        counts = BackupService(db).import_data(data, replace=replace)
    except ValueError as exc:
        logger.warning(f"backup_rejected: filename={file.filename} error={exc}")
        raise _http_error(exc) from exc
    return {"imported": counts}


@app.delete("/api/data")
def delete_all_data(db: Session = Depends(get_db)):
    return {"deleted": BackupService(db).delete_all()}
