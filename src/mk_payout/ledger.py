"""Seller earnings ledger — the single "credit earnings" entry point.

One balance_transactions row per order (UNIQUE order_id) makes crediting
idempotent: a retried credit for the same order inserts nothing and leaves
the balance untouched.
"""

import logging
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.ids import generate_id
from src.mk_common.money import bps_of, round_cents

logger = logging.getLogger(__name__)

_INSERT_EARNING_SQL = text("""
    INSERT INTO balance_transactions
        (id, seller_id, order_id, type, gross_amount, platform_fee, net_amount)
    VALUES
        (:id, :seller_id, :order_id, 'earning', :gross_amount, :platform_fee, :net_amount)
    ON CONFLICT (order_id) DO NOTHING
    RETURNING id
""")

_CREDIT_BALANCE_SQL = text("""
    INSERT INTO seller_balances (seller_id, available_balance, total_earned)
    VALUES (:seller_id, :net_amount, :net_amount)
    ON CONFLICT (seller_id) DO UPDATE
        SET available_balance = seller_balances.available_balance + EXCLUDED.available_balance,
            total_earned      = seller_balances.total_earned      + EXCLUDED.total_earned,
            updated_at = NOW()
""")


def split_earnings(gross_amount: int, platform_fee_bps: int) -> tuple[int, int]:
    """(platform_fee, net) in cents; the fee is rounded half-up once."""
    fee = round_cents(bps_of(gross_amount, platform_fee_bps))
    return fee, gross_amount - fee


class EarningsLedgerProtocol(Protocol):
    async def credit_earnings(
        self,
        db: AsyncSession,
        seller_id: str,
        order_id: str,
        gross_amount: int,
        platform_fee_bps: int,
    ) -> bool: ...


class EarningsLedger:
    async def credit_earnings(
        self,
        db: AsyncSession,
        seller_id: str,
        order_id: str,
        gross_amount: int,
        platform_fee_bps: int,
    ) -> bool:
        """Returns False when this order was already credited."""
        fee, net = split_earnings(gross_amount, platform_fee_bps)
        result = await db.execute(
            _INSERT_EARNING_SQL,
            {
                "id": generate_id(),
                "seller_id": seller_id,
                "order_id": order_id,
                "gross_amount": gross_amount,
                "platform_fee": fee,
                "net_amount": net,
            },
        )
        if result.fetchone() is None:
            logger.info("Earnings already credited order=%s", order_id)
            return False
        await db.execute(_CREDIT_BALANCE_SQL, {"seller_id": seller_id, "net_amount": net})
        logger.info(
            "Earnings credited seller=%s order=%s gross=%d fee=%d net=%d",
            seller_id, order_id, gross_amount, fee, net,
        )
        return True
