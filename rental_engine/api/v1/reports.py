"""GET /v1/dues, the dashboard and collection reports"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request

from rental_engine.api.dependencies import get_dues_aggregator
from rental_engine.api.v1.schemas import (
    CustomerDuesSchema,
    DashboardResponse,
    DueEntrySchema,
    DuesResponse,
    MonthlyCollectionResponse,
)
from rental_engine.domain.dues import DuesFilter
from rental_engine.services.dues import DuesAggregator

router = APIRouter()


@router.get("/dues", response_model=DuesResponse)
def get_dues(request: Request, aggregator: DuesAggregator = Depends(get_dues_aggregator)):
    """
    Outstanding obligations grouped by customer.

    Query filters: ``status``, ``month_key``, ``customer_email``. Any other
    query parameter is rejected with 422.
    """
    dues_filter = DuesFilter.from_params(dict(request.query_params))
    breakdown = aggregator.dues_breakdown(dues_filter)
    return DuesResponse(
        total_due_cents=breakdown.total_due_cents,
        pending_count=breakdown.pending_count,
        overdue_count=breakdown.overdue_count,
        by_customer=[CustomerDuesSchema.from_domain(c) for c in breakdown.by_customer],
        all=[DueEntrySchema.from_domain(e) for e in breakdown.all],
    )


@router.get("/collections/monthly", response_model=MonthlyCollectionResponse)
def get_monthly_collection(
    month: Optional[str] = None,
    aggregator: DuesAggregator = Depends(get_dues_aggregator),
):
    """Payments settled in ``month`` (YYYY-MM, defaults to the current month)"""
    return MonthlyCollectionResponse.from_domain(aggregator.monthly_collection(month))


@router.get("/collections/history", response_model=List[MonthlyCollectionResponse])
def get_collection_history(
    year: Optional[int] = None,
    aggregator: DuesAggregator = Depends(get_dues_aggregator),
):
    return [MonthlyCollectionResponse.from_domain(m) for m in aggregator.collection_history(year)]


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(aggregator: DuesAggregator = Depends(get_dues_aggregator)):
    return DashboardResponse.from_domain(aggregator.dashboard_summary())
