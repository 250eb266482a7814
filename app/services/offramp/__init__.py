"""Fiat off-ramp via Paycrest."""

from app.services.offramp.offramp_service import OfframpService, StatusUpdate
from app.services.offramp.paycrest_client import (
    AccountVerification,
    Institution,
    PaycrestClient,
    PaycrestOrder,
)
from app.services.offramp.rate_cache import RateCache
from app.services.offramp.status_templates import (
    OfframpStatusData,
    StatusTemplate,
    TemplateButton,
    render_status,
    status_emoji,
    status_text,
)


__all__ = [
    "AccountVerification",
    "Institution",
    "OfframpService",
    "OfframpStatusData",
    "PaycrestClient",
    "PaycrestOrder",
    "RateCache",
    "StatusTemplate",
    "StatusUpdate",
    "TemplateButton",
    "render_status",
    "status_emoji",
    "status_text",
]
