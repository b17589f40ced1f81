from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.erreurs import raise_for_code
from src.database import get_db
from src.schemas.notification import NotificationSchema
from src.security.rbac import Access, get_access
from src.services import notifications as svc


router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationSchema])
def api_list_notifications(
    non_lues: bool = Query(False),
    limit: int | None = Query(None, ge=1, le=200),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    return svc.list_notifications(db, access.user_id, non_lues=non_lues, limit=limit)


@router.get("/non-lues/total")
def api_count_non_lues(access: Access = Depends(get_access), db: Session = Depends(get_db)):
    return {"total": svc.count_non_lues(db, access.user_id)}


@router.post("/lues", summary="Marquer toutes les notifications comme lues")
def api_marquer_toutes_lues(access: Access = Depends(get_access), db: Session = Depends(get_db)):
    return {"modifiees": svc.marquer_toutes_lues(db, access.user_id)}


@router.post("/{notification_id}/lue", response_model=NotificationSchema)
def api_marquer_lue(notification_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    res = svc.marquer_lue(db, access.user_id, notification_id)
    if isinstance(res, str):
        raise_for_code(res)
    return res


@router.delete("/{notification_id}")
def api_delete_notification(notification_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    res = svc.delete_notification(db, access.user_id, notification_id)
    if isinstance(res, str):
        raise_for_code(res)
    return {"ok": True}
