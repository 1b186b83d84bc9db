from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .config import InvalidThresholdsError, WhaleThresholds
from .narrator import InsightNarrator
from .schemas import (
    InsightSummary,
    ScanResult,
    ServiceStatus,
    ThresholdsUpdate,
    TokenWhaleAnalysis,
    WhaleAddress,
    WhaleAlerts,
    WhaleInsight,
    WhaleTransactionList,
)
from .whale_service import WhaleTrackerService

router = APIRouter(prefix="/whales", tags=["whales"])


def get_service(request: Request) -> WhaleTrackerService:
    return request.app.state.whale_service


def get_narrator(request: Request) -> InsightNarrator:
    return request.app.state.narrator


# -----------------------------
# /whales/transactions
# -----------------------------
@router.get("/transactions", response_model=WhaleTransactionList)
async def recent_transactions(
    limit: int = Query(20, ge=1, le=500),
    service: WhaleTrackerService = Depends(get_service),
):
    transactions = await service.get_recent_whale_transactions(limit)
    if not transactions:
        return WhaleTransactionList(transactions=[], count=0, summary="No whale transactions found.")

    source = "mock data" if service.is_using_mock_data() else "SeiTrace"
    return WhaleTransactionList(
        transactions=transactions,
        count=len(transactions),
        summary=(
            f"Showing {len(transactions)} whale transactions from {source} "
            f"(min ${service.get_min_whale_transaction():,.0f}, limit={limit})."
        ),
    )


# -----------------------------
# /whales/tokens
# -----------------------------
@router.get("/tokens/{token_address}", response_model=TokenWhaleAnalysis)
async def token_analysis(token_address: str, service: WhaleTrackerService = Depends(get_service)):
    return await service.get_token_whale_analysis(token_address)


@router.get("/tokens/{token_address}/holders", response_model=List[WhaleAddress])
async def token_holders(token_address: str, service: WhaleTrackerService = Depends(get_service)):
    return await service.get_token_holders(token_address)


# -----------------------------
# /whales/insights, /whales/alerts, /whales/summary
# -----------------------------
@router.get("/insights", response_model=List[WhaleInsight])
async def insights(service: WhaleTrackerService = Depends(get_service)):
    return await service.get_whale_insights()


@router.get("/alerts", response_model=WhaleAlerts)
async def alerts(service: WhaleTrackerService = Depends(get_service)):
    return await service.get_whale_alerts()


@router.get("/summary", response_model=InsightSummary)
async def summary(
    limit: int = Query(30, ge=1, le=200),
    service: WhaleTrackerService = Depends(get_service),
    narrator: InsightNarrator = Depends(get_narrator),
):
    transactions = await service.get_recent_whale_transactions(limit)
    found = await service.get_whale_insights()
    return await narrator.summarize(found, transactions)


@router.get("/scan", response_model=ScanResult)
async def scan(
    scan_limit: int = Query(1000, ge=1, le=1000),
    whale_limit: int = Query(50, ge=1, le=500),
    service: WhaleTrackerService = Depends(get_service),
):
    return await service.scan_for_whale_transactions(scan_limit, whale_limit)


# -----------------------------
# /whales/thresholds, /whales/status
# -----------------------------
@router.get("/thresholds", response_model=WhaleThresholds)
def get_thresholds(service: WhaleTrackerService = Depends(get_service)):
    return service.get_whale_thresholds()


@router.put("/thresholds", response_model=WhaleThresholds)
def update_thresholds(payload: ThresholdsUpdate, service: WhaleTrackerService = Depends(get_service)):
    try:
        return service.set_whale_thresholds(**payload.model_dump(exclude_none=True))
    except InvalidThresholdsError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/status", response_model=ServiceStatus)
def status(service: WhaleTrackerService = Depends(get_service)):
    return service.status()
