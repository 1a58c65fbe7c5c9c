"""
Payout account registry.

Maps a performer to their processor connected account and keeps the
onboarding flags current. Accounts are created on the first onboarding
request, refreshed from status checks and account.updated events, and
never deleted.

Usage:
    from payments.services import PayoutAccountService

    service = PayoutAccountService(processor=adapter)
    result = service.start_onboarding(user, country="GB")
    redirect(result.onboarding_url)

    status = service.refresh_status(user)
    status.onboarding_complete

    balance = service.get_balance(caller=user, user_id=user.pk)
    balance.can_instant_payout
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError
from django.utils import timezone

from core.exceptions import PermissionDeniedError, ValidationError
from core.services import BaseService

from payments.adapters import BalanceResult, ExternalAccountResult, StripeAdapter
from payments.exceptions import PayoutAccountNotFoundError
from payments.models import InstantPayout, PayoutAccount

if TYPE_CHECKING:
    from typing import Any


PAYOUT_SCHEDULE_INTERVALS = ("manual", "daily", "weekly", "monthly")
MAX_PAYOUT_DELAY_DAYS = 365
RECENT_PAYOUTS_LIMIT = 5


def authorize_account_owner(caller: Any, user_id: Any) -> None:
    """
    Raises:
        PermissionDeniedError: Caller is neither the user nor an admin
    """
    if str(user_id) != str(caller.pk) and not caller.is_staff:
        raise PermissionDeniedError(
            "You can only manage your own payout account",
            details={"user_id": str(user_id)},
        )


@dataclass
class OnboardingResult:
    account: PayoutAccount
    onboarding_url: str
    created: bool


@dataclass
class AccountStatus:
    account: PayoutAccount
    onboarding_complete: bool
    onboarding_url: str | None = None


@dataclass
class PayoutMethods:
    account: PayoutAccount
    instant_payout_available: bool
    payout_schedule: dict[str, Any] | None
    external_accounts: list[ExternalAccountResult]
    can_add_debit_card: bool
    onboarding_complete: bool


@dataclass
class AccountBalance:
    account: PayoutAccount
    balance: BalanceResult
    payout_schedule: dict[str, Any] | None
    recent_payouts: list[InstantPayout]
    can_instant_payout: bool


class PayoutAccountService(BaseService):
    """
    Onboarding and readiness of performer payout accounts.

    Instance methods call the processor; the classmethods are local
    lookups and updates shared with settlement and webhook handling.
    """

    def __init__(self, processor: StripeAdapter | None = None):
        self.processor = processor or StripeAdapter()

    # =========================================================================
    # Onboarding
    # =========================================================================

    def start_onboarding(
        self,
        user: Any,
        country: str | None = None,
        email: str | None = None,
    ) -> OnboardingResult:
        """
        Create the user's connected account if needed and return a link.

        An existing account gets a fresh onboarding link; a second
        account is never created.
        """
        logger = self.get_logger()

        account = PayoutAccount.objects.filter(user=user).first()
        created = False

        if account is None:
            requested_country = (
                country or settings.STRIPE_CONNECT_DEFAULT_COUNTRY
            ).upper()
            result = self.processor.create_express_account(
                email=email or getattr(user, "email", None) or None,
                country=requested_country,
                metadata={"user_id": str(user.pk)},
            )
            try:
                with self.atomic():
                    account = PayoutAccount.objects.create(
                        user=user,
                        external_account_id=result.id,
                        country=result.country or requested_country,
                        charges_enabled=result.charges_enabled,
                        payouts_enabled=result.payouts_enabled,
                        details_submitted=result.details_submitted,
                    )
                created = True
            except IntegrityError:
                # Concurrent onboarding for the same user won the insert.
                account = PayoutAccount.objects.get(user=user)
                logger.warning(
                    "Discarded duplicate connected account",
                    extra={
                        "user_id": str(user.pk),
                        "external_account_id": result.id,
                        "kept_account_id": account.external_account_id,
                    },
                )

            if created:
                logger.info(
                    "Created payout account",
                    extra={
                        "user_id": str(user.pk),
                        "external_account_id": account.external_account_id,
                        "country": account.country,
                    },
                )

        url = self.processor.create_account_link(account.external_account_id)
        return OnboardingResult(account=account, onboarding_url=url, created=created)

    def refresh_status(self, user: Any) -> AccountStatus:
        """
        Pull the account's flags from the processor and store them.

        Raises:
            PayoutAccountNotFoundError: User never started onboarding
        """
        account = PayoutAccount.objects.filter(user=user).first()
        if account is None:
            raise PayoutAccountNotFoundError(
                "No payout account for this user",
                details={"user_id": str(user.pk)},
            )

        remote = self.processor.retrieve_account(account.external_account_id)
        self.apply_account_update(
            account.external_account_id,
            charges_enabled=remote.charges_enabled,
            payouts_enabled=remote.payouts_enabled,
            details_submitted=remote.details_submitted,
        )
        account = PayoutAccount.objects.get(pk=account.pk)

        url = None
        if not account.onboarding_complete:
            url = self.processor.create_account_link(account.external_account_id)

        return AccountStatus(
            account=account,
            onboarding_complete=account.onboarding_complete,
            onboarding_url=url,
        )

    # =========================================================================
    # Payout settings
    # =========================================================================

    def list_payout_methods(self, caller: Any, user_id: Any) -> PayoutMethods:
        """
        External accounts the user can be paid out to, with the schedule.

        Raises:
            PermissionDeniedError: Caller is neither the user nor an admin
            PayoutAccountNotFoundError: User never started onboarding
        """
        authorize_account_owner(caller, user_id)
        account = self.get_account(user_id)

        remote = self.processor.retrieve_account(account.external_account_id)
        external_accounts = self.processor.list_external_accounts(
            account.external_account_id
        )
        return PayoutMethods(
            account=account,
            instant_payout_available=remote.transfers_active,
            payout_schedule=remote.payout_schedule,
            external_accounts=external_accounts,
            # Instant payouts to debit cards are US-only.
            can_add_debit_card=(remote.country or account.country).upper() == "US",
            onboarding_complete=remote.charges_enabled and remote.payouts_enabled,
        )

    def update_payout_schedule(
        self,
        caller: Any,
        user_id: Any,
        interval: str,
        delay_days: int | None = None,
    ) -> dict[str, Any] | None:
        """
        Set how often the processor pays the account's balance out.

        Returns:
            The schedule the processor stored

        Raises:
            ValidationError: Unknown interval or delay_days out of range
            PermissionDeniedError: Caller is neither the user nor an admin
            PayoutAccountNotFoundError: User never started onboarding
        """
        if interval not in PAYOUT_SCHEDULE_INTERVALS:
            raise ValidationError(
                f"Unknown payout interval '{interval}'",
                details={
                    "interval": interval,
                    "allowed": list(PAYOUT_SCHEDULE_INTERVALS),
                },
            )
        if delay_days is not None and not 0 <= delay_days <= MAX_PAYOUT_DELAY_DAYS:
            raise ValidationError(
                f"delay_days must be between 0 and {MAX_PAYOUT_DELAY_DAYS}",
                details={"delay_days": delay_days},
            )
        authorize_account_owner(caller, user_id)
        account = self.get_account(user_id)

        remote = self.processor.update_payout_schedule(
            account.external_account_id,
            interval=interval,
            delay_days=delay_days,
        )
        self.get_logger().info(
            "Updated payout schedule",
            extra={
                "user_id": str(user_id),
                "external_account_id": account.external_account_id,
                "interval": interval,
            },
        )
        return remote.payout_schedule

    def get_balance(self, caller: Any, user_id: Any) -> AccountBalance:
        """
        Connected account balance, schedule and latest instant payouts.

        Raises:
            PermissionDeniedError: Caller is neither the user nor an admin
            PayoutAccountNotFoundError: User never started onboarding
        """
        authorize_account_owner(caller, user_id)
        account = self.get_account(user_id)

        balance = self.processor.retrieve_balance(account.external_account_id)
        remote = self.processor.retrieve_account(account.external_account_id)
        recent = list(
            InstantPayout.objects.filter(user_id=user_id).order_by("-created_at")[
                :RECENT_PAYOUTS_LIMIT
            ]
        )
        minimum = settings.PAYOUTS_INSTANT_MINIMUM_CENTS
        return AccountBalance(
            account=account,
            balance=balance,
            payout_schedule=remote.payout_schedule,
            recent_payouts=recent,
            can_instant_payout=account.payouts_enabled
            and any(b.amount_cents > minimum for b in balance.available),
        )

    # =========================================================================
    # Local operations
    # =========================================================================

    @classmethod
    def apply_account_update(
        cls,
        external_account_id: str,
        charges_enabled: bool,
        payouts_enabled: bool,
        details_submitted: bool,
    ) -> int:
        """
        Overwrite the onboarding flags of a known account.

        Returns:
            Rows updated; 0 when the account is unknown
        """
        updated = PayoutAccount.objects.filter(
            external_account_id=external_account_id
        ).update(
            charges_enabled=bool(charges_enabled),
            payouts_enabled=bool(payouts_enabled),
            details_submitted=bool(details_submitted),
            updated_at=timezone.now(),
        )
        cls.get_logger().info(
            "Applied payout account update",
            extra={
                "external_account_id": external_account_id,
                "payouts_enabled": bool(payouts_enabled),
                "updated": updated,
            },
        )
        return updated

    @classmethod
    def get_account(cls, user_id: Any) -> PayoutAccount:
        """
        Raises:
            PayoutAccountNotFoundError: User never started onboarding
        """
        account = PayoutAccount.objects.filter(user_id=user_id).first()
        if account is None:
            raise PayoutAccountNotFoundError(
                "No payout account for this user",
                details={"user_id": str(user_id)},
            )
        return account

    @classmethod
    def get_payout_ready_account(cls, user_id: Any) -> PayoutAccount:
        """
        Return the user's account if it can receive payouts.

        Raises:
            PayoutAccountNotFoundError: No account, or payouts not enabled
        """
        account = PayoutAccount.objects.filter(user_id=user_id).first()
        if account is None or not account.is_ready_for_payouts:
            raise PayoutAccountNotFoundError(
                "Performer has no payout-enabled account",
                details={
                    "user_id": str(user_id),
                    "account_exists": account is not None,
                },
            )
        return account
