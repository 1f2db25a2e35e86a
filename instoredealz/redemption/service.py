from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import assert_never

import structlog

from instoredealz.db.models.deal_claims import DealClaim
from instoredealz.db.models.deals import Deal
from instoredealz.db.storage import DealsStorage, StorageUnavailableError
from instoredealz.redemption.constants import (
    ACTION_BILL_AMOUNT_UPDATED,
    ACTION_DEAL_CLAIMED_PENDING,
    ACTION_DEAL_PIN_VERIFIED,
    MEMBERSHIP_TIERS,
)
from instoredealz.redemption.errors import (
    ClaimNotFoundError,
    ClaimNotVerifiedError,
    DealNotFoundError,
    DealUnavailableError,
    InvalidBillError,
    InvalidPinError,
    InvalidPinFormatError,
    MembershipInsufficientError,
    RateLimitedError,
    UserNotFoundError,
)
from instoredealz.redemption.pin_codec import (
    normalize_pin,
    static_scheme_for,
    validate_pin_format,
    verify_hashed_pin,
    verify_legacy_pin,
)
from instoredealz.redemption.rate_limit import check_rate_limit
from instoredealz.redemption.rotating_pin import RotatingPinGenerator
from instoredealz.redemption.types import (
    BillUpdateResult,
    ClaimResult,
    ClaimStatus,
    HashedPin,
    LegacyPin,
    PinAttemptResult,
    PinScheme,
    RateLimitDecision,
    RateLimitPolicy,
    RequestContext,
    RotatingPin,
    VerifyPinResult,
)
from instoredealz.services.system_logs import write_system_log

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


def to_money(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def membership_tier(plan: str | None) -> int:
    return MEMBERSHIP_TIERS.get((plan or "basic").lower(), MEMBERSHIP_TIERS["basic"])


def fixed_savings(deal: Deal) -> Decimal:
    if deal.original_price is None or deal.discounted_price is None:
        return Decimal("0.00")
    savings = to_money(deal.original_price - deal.discounted_price) or Decimal("0.00")
    return max(savings, Decimal("0.00"))


def ensure_deal_available(deal: Deal, *, now_utc: datetime) -> None:
    if not deal.is_active or not deal.is_approved:
        raise DealUnavailableError("This deal is not currently available")
    if deal.valid_until <= now_utc:
        raise DealUnavailableError("This deal has expired")
    if deal.max_redemptions is not None and (deal.current_redemptions or 0) >= deal.max_redemptions:
        raise DealUnavailableError("This deal has reached its redemption limit")


def _scheme_name(scheme: PinScheme) -> str:
    match scheme:
        case RotatingPin():
            return "rotating"
        case HashedPin():
            return "hashed"
        case LegacyPin():
            return "legacy"
        case _:
            assert_never(scheme)


class RedemptionService:
    """Claim, PIN verification and bill completion for in-store deals.

    Lifecycle of a claim: ``pending`` (claimed) -> ``pending`` with
    ``verified_at`` set (PIN accepted, awaiting bill) -> ``used`` (bill
    recorded). Every verification call appends one PIN attempt before it
    returns or raises.
    """

    def __init__(
        self,
        storage: DealsStorage,
        *,
        rotating_pins: RotatingPinGenerator,
        rate_limit_policy: RateLimitPolicy | None = None,
    ) -> None:
        self._storage = storage
        self._rotating_pins = rotating_pins
        self._rate_limit_policy = rate_limit_policy or RateLimitPolicy()

    async def claim_deal(
        self,
        *,
        user_id: int,
        deal_id: int,
        context: RequestContext | None = None,
        now_utc: datetime | None = None,
    ) -> ClaimResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        deal = await self._storage.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError
        ensure_deal_available(deal, now_utc=now_utc)

        user = await self._storage.get_user(user_id)
        if user is None:
            raise UserNotFoundError
        if membership_tier(user.membership_plan) < membership_tier(deal.required_membership):
            logger.info(
                "deal_claim_membership_rejected",
                deal_id=deal_id,
                user_id=user_id,
                user_plan=user.membership_plan,
                required=deal.required_membership,
            )
            raise MembershipInsufficientError(
                f"This deal requires {deal.required_membership} membership"
            )

        claim = await self._storage.claim_deal(
            DealClaim(
                user_id=user_id,
                deal_id=deal_id,
                status=ClaimStatus.PENDING.value,
                savings_amount=Decimal("0.00"),
                claimed_at=now_utc,
            )
        )
        await write_system_log(
            self._storage,
            action=ACTION_DEAL_CLAIMED_PENDING,
            user_id=user_id,
            details={"dealId": deal_id, "claimId": claim.id, "dealTitle": deal.title},
            context=context,
            now_utc=now_utc,
        )
        logger.info("deal_claimed", deal_id=deal_id, user_id=user_id, claim_id=claim.id)
        return ClaimResult(
            claim_id=claim.id,
            user_id=user_id,
            deal_id=deal_id,
            status=claim.status,
            claimed_at=claim.claimed_at,
            savings_amount=claim.savings_amount,
        )

    async def _record_attempt(
        self,
        *,
        deal_id: int,
        user_id: int | None,
        context: RequestContext,
        result: PinAttemptResult,
        now_utc: datetime,
    ) -> None:
        await self._storage.record_pin_attempt(
            deal_id=deal_id,
            user_id=user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            success=result is PinAttemptResult.ACCEPTED,
            result=result.value,
            attempted_at=now_utc,
        )

    async def _reject(
        self,
        error: Exception,
        *,
        deal_id: int,
        user_id: int | None,
        context: RequestContext,
        result: PinAttemptResult,
        now_utc: datetime,
        reason: str,
    ) -> Exception:
        await self._record_attempt(
            deal_id=deal_id,
            user_id=user_id,
            context=context,
            result=result,
            now_utc=now_utc,
        )
        logger.info(
            "pin_verify_rejected",
            deal_id=deal_id,
            user_id=user_id,
            ip_address=context.ip_address,
            result=result.value,
            reason=reason,
        )
        return error

    async def _check_rate_limit(
        self,
        *,
        deal_id: int,
        user_id: int | None,
        context: RequestContext,
        now_utc: datetime,
    ) -> RateLimitDecision:
        since_utc = now_utc - max(self._rate_limit_policy.window, self._rate_limit_policy.daily_window)
        try:
            attempts = await self._storage.get_pin_attempts(
                deal_id,
                user_id=user_id,
                ip_address=context.ip_address,
                since_utc=since_utc,
            )
        except StorageUnavailableError as exc:
            logger.error("pin_attempt_log_unavailable", deal_id=deal_id, user_id=user_id, exc_info=exc)
            attempts = None
        return check_rate_limit(attempts, now_utc=now_utc, policy=self._rate_limit_policy)

    async def _scheme_accepts(
        self, scheme: PinScheme, pin: str, *, deal_id: int, now_utc: datetime
    ) -> bool:
        match scheme:
            case RotatingPin(deal_id=rotating_deal_id):
                return self._rotating_pins.verify(rotating_deal_id, pin, now_utc)
            case HashedPin(hashed_pin=hashed_pin, salt=salt, expires_at=expires_at):
                if expires_at is not None and expires_at <= now_utc:
                    logger.info("static_pin_expired", deal_id=deal_id, expired_at=expires_at.isoformat())
                    return False
                # bcrypt is CPU bound.
                check = await asyncio.to_thread(
                    verify_hashed_pin, pin, hashed_pin, salt, expires_at, now_utc=now_utc
                )
                return check.is_valid
            case LegacyPin(plaintext=plaintext):
                return verify_legacy_pin(pin, plaintext)
            case _:
                assert_never(scheme)

    async def _match_pin(self, deal: Deal, pin: str, *, now_utc: datetime) -> PinScheme | None:
        schemes: list[PinScheme] = [RotatingPin(deal_id=deal.id)]
        static_scheme = static_scheme_for(deal)
        if static_scheme is not None:
            schemes.append(static_scheme)
        for scheme in schemes:
            if await self._scheme_accepts(scheme, pin, deal_id=deal.id, now_utc=now_utc):
                return scheme
        return None

    async def verify_pin(
        self,
        *,
        user_id: int,
        deal_id: int,
        pin: object,
        context: RequestContext,
        now_utc: datetime | None = None,
    ) -> VerifyPinResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        reject = dict(deal_id=deal_id, user_id=user_id, context=context, now_utc=now_utc)

        format_check = validate_pin_format(pin)
        if not format_check.is_valid:
            raise await self._reject(
                InvalidPinFormatError(format_check.message),
                result=PinAttemptResult.INVALID_FORMAT,
                reason="format",
                **reject,
            )
        clean_pin = normalize_pin(pin)

        deal = await self._storage.get_deal(deal_id)
        if deal is None:
            raise await self._reject(
                DealNotFoundError(),
                result=PinAttemptResult.DEAL_NOT_FOUND,
                reason="deal_not_found",
                **reject,
            )
        try:
            ensure_deal_available(deal, now_utc=now_utc)
        except DealUnavailableError as exc:
            raise await self._reject(
                exc,
                result=PinAttemptResult.DEAL_UNAVAILABLE,
                reason=exc.message,
                **reject,
            ) from None

        decision = await self._check_rate_limit(
            deal_id=deal_id, user_id=user_id, context=context, now_utc=now_utc
        )
        if not decision.allowed:
            logger.warning(
                "pin_verify_rate_limited",
                deal_id=deal_id,
                user_id=user_id,
                ip_address=context.ip_address,
                next_attempt_at=(
                    decision.next_attempt_at.isoformat() if decision.next_attempt_at else None
                ),
            )
            raise await self._reject(
                RateLimitedError(decision.message, next_attempt_at=decision.next_attempt_at),
                result=PinAttemptResult.RATE_LIMITED,
                reason="rate_limited",
                **reject,
            )

        scheme = await self._match_pin(deal, clean_pin, now_utc=now_utc)
        if scheme is None:
            raise await self._reject(
                InvalidPinError(),
                result=PinAttemptResult.INVALID_PIN,
                reason="pin_mismatch",
                **reject,
            )
        await self._record_attempt(result=PinAttemptResult.ACCEPTED, **reject)
        if isinstance(scheme, LegacyPin):
            logger.warning("legacy_pin_verified", deal_id=deal_id, vendor_id=deal.vendor_id)

        savings = fixed_savings(deal)
        async with self._storage.claim_lock(deal_id, user_id):
            claims = await self._storage.get_user_claims(user_id)
            pending = next(
                (
                    claim
                    for claim in reversed(claims)
                    if claim.deal_id == deal_id and claim.status == ClaimStatus.PENDING.value
                ),
                None,
            )
            if pending is None:
                pending = await self._storage.claim_deal(
                    DealClaim(
                        user_id=user_id,
                        deal_id=deal_id,
                        status=ClaimStatus.PENDING.value,
                        savings_amount=Decimal("0.00"),
                        claimed_at=now_utc,
                    )
                )
            first_verification = pending.verified_at is None
            claim = await self._storage.update_deal_claim(
                pending.id,
                savings_amount=savings,
                verified_at=pending.verified_at or now_utc,
            )
            if claim is None:
                raise ClaimNotFoundError
            await self._storage.increment_deal_redemptions(deal_id)

        scheme_name = _scheme_name(scheme)
        await write_system_log(
            self._storage,
            action=ACTION_DEAL_PIN_VERIFIED,
            user_id=user_id,
            details={
                "dealId": deal_id,
                "claimId": claim.id,
                "pinScheme": scheme_name,
                "savingsAmount": str(savings),
            },
            context=context,
            now_utc=now_utc,
        )
        logger.info(
            "pin_verified",
            deal_id=deal_id,
            user_id=user_id,
            claim_id=claim.id,
            pin_scheme=scheme_name,
            first_verification=first_verification,
        )
        return VerifyPinResult(
            claim_id=claim.id,
            status=claim.status,
            savings_amount=savings,
            deal_title=deal.title,
            discount_percentage=deal.discount_percentage,
            scheme=scheme_name,
            first_verification=first_verification,
        )

    async def update_bill(
        self,
        *,
        user_id: int,
        deal_id: int,
        bill_amount: object,
        actual_savings: object,
        context: RequestContext | None = None,
        now_utc: datetime | None = None,
    ) -> BillUpdateResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        bill = to_money(bill_amount)
        savings = to_money(actual_savings)
        if bill is None or savings is None or bill <= 0 or savings <= 0:
            raise InvalidBillError

        claims = [
            claim for claim in await self._storage.get_user_claims(user_id) if claim.deal_id == deal_id
        ]
        if not claims:
            raise ClaimNotFoundError
        claim = max(claims, key=lambda item: (item.claimed_at, item.id))
        if claim.verified_at is None and claim.status != ClaimStatus.USED.value:
            logger.warning("bill_update_unverified_claim", deal_id=deal_id, user_id=user_id, claim_id=claim.id)
            raise ClaimNotVerifiedError

        user = await self._storage.get_user(user_id)
        if user is None:
            raise UserNotFoundError

        previous_savings = claim.actual_savings or Decimal("0.00")
        resubmission = claim.bill_amount is not None
        new_total = to_money((user.total_savings or Decimal("0.00")) - previous_savings + savings)
        await self._storage.update_user(user_id, total_savings=new_total)
        await self._storage.update_deal_claim(
            claim.id,
            bill_amount=bill,
            actual_savings=savings,
            status=ClaimStatus.USED.value,
            used_at=claim.used_at or now_utc,
        )

        await write_system_log(
            self._storage,
            action=ACTION_BILL_AMOUNT_UPDATED,
            user_id=user_id,
            details={
                "dealId": deal_id,
                "claimId": claim.id,
                "billAmount": str(bill),
                "actualSavings": str(savings),
                "previousSavings": str(previous_savings),
            },
            context=context,
            now_utc=now_utc,
        )
        logger.info(
            "deal_bill_updated",
            deal_id=deal_id,
            user_id=user_id,
            claim_id=claim.id,
            resubmission=resubmission,
        )
        return BillUpdateResult(
            claim_id=claim.id,
            bill_amount=bill,
            actual_savings=savings,
            new_total_savings=new_total,
        )
