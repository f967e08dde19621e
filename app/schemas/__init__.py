"""
API schema package.
"""

from app.schemas.analytics import (
    ActiveSubscriptionRow,
    CustomerValueRow,
    DailySalesResponse,
    DailySalesRow,
    FailedPaymentRow,
    LowInventoryRow,
    MrrRow,
    TopProductRow,
)
from app.schemas.records import RecordListResponse, RecordResponse
from app.schemas.sync import SyncRequest, SyncRunResponse, SyncStatusResponse
from app.schemas.webhooks import (
    WebhookAckResponse,
    WebhookEventListResponse,
    WebhookEventResponse,
    WebhookEventSummaryItem,
    WebhookReplayRequest,
    WebhookReplayResponse,
)

__all__ = [
    "ActiveSubscriptionRow",
    "CustomerValueRow",
    "DailySalesResponse",
    "DailySalesRow",
    "FailedPaymentRow",
    "LowInventoryRow",
    "MrrRow",
    "TopProductRow",
    "RecordListResponse",
    "RecordResponse",
    "SyncRequest",
    "SyncRunResponse",
    "SyncStatusResponse",
    "WebhookAckResponse",
    "WebhookEventListResponse",
    "WebhookEventResponse",
    "WebhookEventSummaryItem",
    "WebhookReplayRequest",
    "WebhookReplayResponse",
]
