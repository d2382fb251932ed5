"""
Monitoring & Alerts API

Endpoints:
- GET /api/alerts - List alerts
- PATCH /api/alerts/{id} - Acknowledge or resolve an alert
- POST /api/monitoring/shopify/{client_id}/check - Run Shopify anomaly detection
- POST /api/monitoring/google-ads/{client_id}/check - Run the conversion-drop check
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from viralhub.auth import AuthenticatedUser, get_current_user, require_internal_role
from viralhub.database import Client, ViralRepository
from viralhub.exceptions import NotFoundError, ValidationError
from viralhub.integrations import parse_client_settings
from viralhub.monitoring import (
    list_alerts,
    run_google_ads_check,
    run_shopify_anomaly_check,
    serialize_alert,
    update_alert_status,
)

from .deps import get_repository

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["Monitoring"],
    dependencies=[Depends(get_current_user)],
)


class AlertStatusRequest(BaseModel):
    status: Literal["acknowledged", "resolved"]


def _load_client(repository: ViralRepository, client_id: str) -> Client:
    client = repository.get_client(client_id)
    if client is None:
        raise NotFoundError("Client", client_id)
    return client


@router.get("/alerts")
async def get_alerts(
    client_id: Optional[str] = Query(None, alias="clientId"),
    status: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    repository: ViralRepository = Depends(get_repository),
):
    alerts = list_alerts(repository, client_id=client_id, status=status, severity=severity, limit=limit)
    return {"data": [serialize_alert(a) for a in alerts], "count": len(alerts)}


@router.patch("/alerts/{alert_id}")
async def patch_alert(
    alert_id: str,
    body: AlertStatusRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
):
    alert = update_alert_status(repository, alert_id, body.status)
    return {"success": True, "data": serialize_alert(alert)}


@router.post("/monitoring/shopify/{client_id}/check")
async def check_shopify(
    client_id: str,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
):
    client = _load_client(repository, client_id)
    settings = parse_client_settings(client.settings).shopify
    if settings is None:
        raise ValidationError("Shopify is not configured for this client")

    result = run_shopify_anomaly_check(repository, client.id, settings)
    return {"success": True, "data": result.to_dict()}


@router.post("/monitoring/google-ads/{client_id}/check")
async def check_google_ads(
    client_id: str,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
):
    client = _load_client(repository, client_id)
    settings = parse_client_settings(client.settings).google_ads
    if settings is None:
        raise ValidationError("Google Ads is not configured for this client")

    result = run_google_ads_check(repository, client.id, settings)
    return {"success": True, "data": result.to_dict()}
