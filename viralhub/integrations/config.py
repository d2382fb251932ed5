"""
Client Integration Configuration

Each client row carries a settings blob (JSON). Instead of threading that
dict through business logic, it is validated once at the boundary into
explicit per-integration models:

- ClientContext: proposition, audience, tone, forbidden claims
- ShopifySettings: store identity + anomaly thresholds
- GoogleAdsSettings: customer identity + conversion drop thresholds

Invalid blobs raise ValidationError (400) with field-level details.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from viralhub.exceptions import ValidationError
from viralhub.monitoring.anomalies import AnomalyThresholds
from viralhub.monitoring.google_ads import PerformanceDropThresholds

logger = logging.getLogger(__name__)


class ClientContext(BaseModel):
    """Brand context used in brief and content prompts."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    proposition: Optional[str] = None
    target_audience: Optional[str] = Field(default=None, alias="targetAudience")
    industry: Optional[str] = None
    usps: List[str] = Field(default_factory=list)
    tone_of_voice: Optional[str] = Field(default=None, alias="toneOfVoice")
    brand_voice: Optional[str] = Field(default=None, alias="brandVoice")
    do_nots: List[str] = Field(default_factory=list, alias="doNots")


class ShopifySettings(BaseModel):
    """Shopify store + anomaly thresholds (percentages)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    store_id: str = Field(..., min_length=1, alias="storeId")
    shop_domain: Optional[str] = Field(default=None, alias="shopDomain")
    access_token: Optional[str] = Field(default=None, alias="accessToken")

    revenue_drop_warning: float = Field(default=20, ge=0, le=100, alias="revenueDropWarning")
    revenue_drop_critical: float = Field(default=40, ge=0, le=100, alias="revenueDropCritical")
    orders_drop_warning: float = Field(default=25, ge=0, le=100, alias="ordersDropWarning")
    orders_drop_critical: float = Field(default=50, ge=0, le=100, alias="ordersDropCritical")
    aov_drop_warning: float = Field(default=15, ge=0, le=100, alias="aovDropWarning")
    high_refund_rate: float = Field(default=10, ge=0, le=100, alias="highRefundRate")
    min_baseline: int = Field(default=10, ge=0, alias="minBaseline")

    def to_thresholds(self) -> AnomalyThresholds:
        return AnomalyThresholds(
            revenue_drop_warning=self.revenue_drop_warning,
            revenue_drop_critical=self.revenue_drop_critical,
            orders_drop_warning=self.orders_drop_warning,
            orders_drop_critical=self.orders_drop_critical,
            aov_drop_warning=self.aov_drop_warning,
            high_refund_rate=self.high_refund_rate,
            min_baseline=self.min_baseline,
        )


class GoogleAdsSettings(BaseModel):
    """Google Ads account + conversion drop thresholds (percentages)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    customer_id: str = Field(..., min_length=1, alias="customerId")
    conversion_drop_warning: float = Field(default=25, ge=0, le=100, alias="conversionDropWarning")
    conversion_drop_critical: float = Field(default=50, ge=0, le=100, alias="conversionDropCritical")

    def to_thresholds(self) -> PerformanceDropThresholds:
        return PerformanceDropThresholds(
            warning=self.conversion_drop_warning,
            critical=self.conversion_drop_critical,
        )


class ClientSettings(BaseModel):
    """Validated view over a client's settings blob."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    context: Optional[ClientContext] = None
    shopify: Optional[ShopifySettings] = None
    google_ads: Optional[GoogleAdsSettings] = Field(default=None, alias="googleAds")


def parse_client_settings(raw: Optional[Dict[str, Any]]) -> ClientSettings:
    """
    Validate a raw settings blob.

    Raises:
        ValidationError: with pydantic's field errors in details
    """
    try:
        return ClientSettings.model_validate(raw or {})
    except PydanticValidationError as e:
        logger.warning(f"Invalid client settings: {e.error_count()} errors")
        raise ValidationError(
            "Invalid client integration settings",
            {"errors": e.errors(include_url=False)},
        )
