"""
Dashboard: headline numbers, occupancy trend and recent activity
"""

from fastapi import APIRouter, Depends, Query

from services.reporting_service import ReportingService
from utils.dependencies import get_reporting_service

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("")
def dashboard(reports: ReportingService = Depends(get_reporting_service)):
    return {
        "stats": reports.dashboard_statistics(),
        "occupancy_trend": reports.occupancy_trend(),
        "recent_activities": reports.recent_activities(),
        "employee_status": reports.employee_status_breakdown(),
    }


@router.get("/statistics")
def statistics(reports: ReportingService = Depends(get_reporting_service)):
    return reports.dashboard_statistics()


@router.get("/occupancy-trend")
def occupancy_trend(
    days: int = Query(7, ge=1, le=90),
    reports: ReportingService = Depends(get_reporting_service),
):
    return reports.occupancy_trend(days)


@router.get("/recent-activities")
def recent_activities(
    limit: int = Query(10, ge=1, le=100),
    reports: ReportingService = Depends(get_reporting_service),
):
    return reports.recent_activities(limit)
