"""Coupon provider chain.

Aggregates any number of independent coupon providers behind one interface.
Each provider is isolated: an error from one provider is logged and that
provider is skipped, so a single bad provider never blocks the others.

The chain is also the default CouponLedger: lock/redeem/unlock are delegated
code by code to the provider that supports each code.
"""

from collections.abc import Callable
from typing import Any

import structlog

from checkout.coupons.port import Coupon, CouponLedger, CouponProvider

logger = structlog.get_logger(__name__)


class CouponProviderChain(CouponLedger):
    def __init__(
        self,
        providers: list[CouponProvider] | None = None,
        external_resolver: Callable[[str, str], Coupon | None] | None = None,
    ) -> None:
        self.providers: list[CouponProvider] = list(providers or [])
        self.external_resolver = external_resolver

    def add_provider(self, provider: CouponProvider) -> None:
        self.providers.append(provider)

    def _provider_for(self, code: str) -> CouponProvider | None:
        for provider in self.providers:
            try:
                if provider.supports(code):
                    return provider
            except Exception as exc:
                logger.warning("Coupon provider failed", provider=provider.name, code=code, error=str(exc))
        return None

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    def get_all_coupons_for_user(self, user_id: str) -> list[Coupon]:
        coupons = []
        for provider in self.providers:
            try:
                coupons.extend(provider.get_all_coupons_for_user(user_id))
            except Exception as exc:
                logger.warning(
                    "Coupon provider failed to list coupons",
                    provider=provider.name,
                    user_id=user_id,
                    error=str(exc),
                )
        return coupons

    def find_by_code(self, code: str, user_id: str) -> Coupon | None:
        for provider in self.providers:
            try:
                if not provider.supports(code):
                    continue
                coupon = provider.find_by_code(code, user_id)
            except Exception as exc:
                logger.warning("Coupon provider lookup failed", provider=provider.name, code=code, error=str(exc))
                continue
            if coupon is not None:
                return coupon

        if self.external_resolver is not None:
            logger.info("Requesting external coupon resolution", code=code, user_id=user_id)
            return self.external_resolver(code, user_id)
        return None

    # -------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------
    def lock(self, user_id: str, codes: list[str]) -> list[str]:
        locked = []
        for code in codes:
            provider = self._provider_for(code)
            if provider is None:
                logger.warning("No provider for coupon", code=code, user_id=user_id)
                continue
            try:
                if provider.lock(code, user_id):
                    locked.append(code)
            except Exception as exc:
                logger.warning("Coupon lock failed", provider=provider.name, code=code, user_id=user_id, error=str(exc))
        return locked

    def redeem(self, codes: list[str], user_id: str, order_id: str, order_number: str) -> list[str]:
        metadata: dict[str, Any] = {"order_id": order_id, "order_number": order_number}
        redeemed = []
        for code in codes:
            provider = self._provider_for(code)
            if provider is None:
                continue
            try:
                if provider.redeem(code, user_id, metadata):
                    redeemed.append(code)
            except Exception as exc:
                logger.error(
                    "Coupon redemption failed",
                    provider=provider.name,
                    code=code,
                    user_id=user_id,
                    order_number=order_number,
                    error=str(exc),
                )
        return redeemed

    def unlock(self, codes: list[str], user_id: str) -> None:
        for code in codes:
            provider = self._provider_for(code)
            if provider is None:
                continue
            try:
                provider.unlock(code, user_id)
            except Exception as exc:
                logger.error("Coupon unlock failed", provider=provider.name, code=code, user_id=user_id, error=str(exc))
