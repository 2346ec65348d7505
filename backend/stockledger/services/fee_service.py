# Overview: Billing collaborator; platform transaction fee for a sale amount.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Merchant


def fee_rate_bps(merchant_id: int) -> int:
    """Merchant's own rate if set, otherwise the platform default (basis points)."""
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is not None and merchant.transaction_fee_bps is not None:
        return merchant.transaction_fee_bps
    return int(current_app.config.get("DEFAULT_TRANSACTION_FEE_BPS", 0))


def transaction_fee(amount_cents: int, merchant_id: int) -> int:
    """
    Platform fee for a sale total, in cents.

    fee = amount * bps / 10000 with nearest-cent rounding (half-up).
    """
    rate = fee_rate_bps(merchant_id)
    if amount_cents <= 0 or rate <= 0:
        return 0
    return (amount_cents * rate + 5000) // 10000
