from datetime import datetime
from io import BytesIO

from fastapi import APIRouter, Depends, Query, Response
from openpyxl import Workbook
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models import User
from ..utils.analytics import analytics_snapshot


router = APIRouter(prefix="/admin/analytics", tags=["admin"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("")
def analytics(days_back: int = Query(30, ge=0, le=3650), admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return analytics_snapshot(db, days_back)


def build_workbook(data: dict) -> Workbook:
    ov = data["overview"]
    wb = Workbook(); ws = wb.active; ws.title = "Overview"
    ws.append(["Metric", "Value"])
    ws.append(["Total Listings", ov["total_listings"]])
    ws.append(["Total Views", ov["total_views"]])
    ws.append(["Total Likes", ov["total_likes"]])
    ws.append(["Total Dealerships", ov["total_dealerships"]])
    ws.append(["Total Users", ov["total_users"]])
    ws.append(["Active Subscriptions", ov["active_subscriptions"]])
    ws.append(["", ""])
    ws.append(["Cars for Sale - Total", ov["cars_sale"]["total"]])
    ws.append(["Cars for Sale - Revenue", ov["cars_sale"]["revenue"]])
    ws.append(["Cars for Rent - Total", ov["cars_rent"]["total"]])
    ws.append(["Number Plates - Total", ov["number_plates"]["total"]])

    weekly = wb.create_sheet("Weekly Breakdown")
    weekly.append(["Week", "Cars for Sale", "Cars for Rent", "Number Plates", "Sales", "New Users"])
    for w in data["weekly_breakdown"]:
        weekly.append([w["week_start"], w["cars_sale"], w["cars_rent"], w["number_plates"], w["sales"], w["new_users"]])
    return wb


@router.get("/export.xlsx")
def export_xlsx(days_back: int = Query(30, ge=0, le=3650), admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    wb = build_workbook(analytics_snapshot(db, days_back))
    out = BytesIO(); wb.save(out)
    filename = f"fleet-analytics-{datetime.utcnow().date().isoformat()}.xlsx"
    return Response(
        out.getvalue(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
