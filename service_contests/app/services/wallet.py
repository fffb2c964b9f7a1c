"""
Wallet balances and KYC document status, cached with state-dependent TTLs.
"""

from typing import Optional

from pydantic import BaseModel

from shared.logging import get_logger

from ..caching import CacheKeys, CacheManager, VerificationStatus, get_verification_ttl, get_wallet_ttl
from ..persistence import QueryStore


# payment_type -> balance field
PAYMENT_TYPE_FIELDS = {
    1: "bonus_amount",
    2: "referral_amount",
    3: "deposit_amount",
    4: "prize_amount",
    9: "extra_cash",
}
# Payment types that count towards the withdrawable wallet amount
WALLET_PAYMENT_TYPES = (3, 4)

KYC_DOC_TYPES = ("pancard", "adharcard")


class WalletBalances(BaseModel):
    """Per-type balances for a user."""
    bonus_amount: float = 0
    prize_amount: float = 0
    referral_amount: float = 0
    deposit_amount: float = 0
    extra_cash: float = 0
    wallet_amount: float = 0


class DocumentStatus(BaseModel):
    """KYC document verification state."""
    document_verified: int = int(VerificationStatus.NOT_SUBMITTED)
    doc_type: Optional[str] = None
    pan_name: Optional[str] = None
    pan_number: Optional[str] = None


class WalletService:
    """Reads wallet data through the cache. Store errors propagate."""

    def __init__(self, cache: CacheManager, store: QueryStore):
        self.cache = cache
        self.store = store
        self.logger = get_logger("contests.wallet")

    async def get_wallet_balances(self, user_id: int) -> WalletBalances:
        cache_key = CacheKeys.wallet_balances(user_id)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            return WalletBalances.model_validate(cached)

        rows = await self.store.query_all(
            "SELECT payment_type, amount FROM wallets WHERE user_id = %s",
            [user_id],
        )

        balances = WalletBalances()
        wallet_amount = 0.0
        for row in rows:
            field = PAYMENT_TYPE_FIELDS.get(row.get("payment_type"))
            if field is None:
                continue
            amount = float(row.get("amount") or 0)
            setattr(balances, field, amount)
            if row["payment_type"] in WALLET_PAYMENT_TYPES:
                wallet_amount += amount
        balances.wallet_amount = wallet_amount

        await self.cache.set(cache_key, balances.model_dump(), get_wallet_ttl(wallet_amount))
        return balances

    async def get_document_status(self, user_id: int) -> DocumentStatus:
        cache_key = CacheKeys.document_status(user_id)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            return DocumentStatus.model_validate(cached)

        doc = await self.store.query_one(
            "SELECT status, doc_type, doc_name, doc_number FROM verify_documents "
            "WHERE user_id = %s AND doc_type IN (%s, %s) LIMIT 1",
            [user_id, *KYC_DOC_TYPES],
        )

        if doc:
            status = DocumentStatus(
                document_verified=doc["status"],
                doc_type=doc.get("doc_type"),
                pan_name=doc.get("doc_name"),
                pan_number=doc.get("doc_number"),
            )
        else:
            status = DocumentStatus()

        await self.cache.set(
            cache_key,
            status.model_dump(),
            get_verification_ttl(status.document_verified),
        )
        return status

    async def invalidate_user(self, user_id: int) -> int:
        """Drop every cached entry for a user (e.g. after a deposit or KYC update)."""
        removed = await self.cache.delete_pattern(CacheKeys.user_pattern(user_id))
        self.logger.info("Invalidated user cache", user_id=user_id, keys_count=removed)
        return removed
