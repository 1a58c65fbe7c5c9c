"""
Stripe API adapter for payment operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. Every processor call made by the payments app
goes through an adapter instance so that timeouts, retries, idempotency,
error translation and logging are applied the same way everywhere.

Features:
- Bounded timeout on all API calls
- Explicit retry policy for transient failures (no SDK-level retries)
- Translation of Stripe errors into payments.exceptions
- Structured logging with timing metrics
- Idempotency keys on every money-moving call

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 20)
- STRIPE_MAX_RETRIES: Retries after the first attempt (default: 2)

Usage:
    from payments.adapters import StripeAdapter, IdempotencyKeyGenerator

    adapter = StripeAdapter()
    result = adapter.create_hold(
        amount_cents=5000,
        currency="usd",
        metadata={"request_id": str(request.id)},
        idempotency_key=IdempotencyKeyGenerator.generate("create_hold", hold_ref),
    )
    adapter.capture_hold(result.id, idempotency_key="capture_hold:...")
"""

from __future__ import annotations

import hashlib
import logging
import random
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import stripe
from django.conf import settings

from payments.exceptions import (
    ProcessorCardDeclinedError,
    ProcessorError,
    ProcessorInsufficientFundsError,
    ProcessorInvalidAccountError,
    ProcessorUnavailableError,
    SignatureVerificationFailedError,
)

T = TypeVar("T")


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Current status (requires_payment_method, requires_capture, ...)
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret the payer's device uses to confirm the charge
        metadata: Attached metadata
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    Result from Stripe Transfer operations.

    Attributes:
        id: Transfer ID (tr_xxx)
        amount_cents: Amount transferred in cents
        currency: Currency code
        destination_account: Destination Stripe account ID
        metadata: Attached metadata
        raw_response: Full Stripe response dict
    """

    id: str
    amount_cents: int
    currency: str
    destination_account: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountResult:
    """
    Result from Stripe Connect account operations.

    Attributes:
        id: Account ID (acct_xxx)
        country: Country the account was created in
        charges_enabled: Account can accept charges
        payouts_enabled: Account can receive payouts
        details_submitted: Onboarding form completed
        transfers_active: The transfers capability is active
        payout_schedule: settings.payouts.schedule as Stripe reports it
    """

    id: str
    country: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    transfers_active: bool = False
    payout_schedule: dict[str, Any] | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PayoutResult:
    """
    Result from Stripe Payout operations on a connected account.

    Attributes:
        id: Payout ID (po_xxx)
        status: pending, in_transit, paid, failed or canceled
        amount_cents: Amount in cents
        currency: Currency code
        method: "instant" or "standard"
        destination: External account (ba_xxx / card_xxx) paid out to
        arrival_date: Expected arrival as a unix timestamp
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    method: str = "standard"
    destination: str | None = None
    arrival_date: int | None = None
    failure_code: str | None = None
    failure_message: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExternalAccountResult:
    """A bank account or debit card attached to a connected account."""

    id: str
    type: str
    last4: str | None = None
    brand: str | None = None
    bank_name: str | None = None
    currency: str | None = None
    country: str | None = None
    default_for_currency: bool = False
    status: str = "new"
    available_payout_methods: list[str] = field(default_factory=list)


@dataclass
class BalanceAmount:
    amount_cents: int
    currency: str


@dataclass
class BalanceResult:
    """Connected account balance, split by availability."""

    available: list[BalanceAmount] = field(default_factory=list)
    pending: list[BalanceAmount] = field(default_factory=list)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same (operation, entity_id, attempt) always yields the same key,
    so re-invoking an operation for the same entity never moves money
    twice.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="capture_hold",
            entity_id=hold.id,
        )
        # Result: "capture_hold:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Retry Policy
# =============================================================================


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy for transient processor failures.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Backoff base in seconds
        max_delay: Upper bound for a single backoff
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        retries = getattr(settings, "STRIPE_MAX_RETRIES", 2)
        return cls(max_attempts=max(1, int(retries) + 1))

    def delay_for(self, attempt: int) -> float:
        return backoff_delay(attempt, base=self.base_delay, max_delay=self.max_delay)


class _TransientProcessorError(Exception):
    """Internal marker: a Stripe failure worth another attempt."""

    def __init__(self, message: str, processor_code: str):
        super().__init__(message)
        self.processor_code = processor_code


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    Instances carry their own API key, webhook secret, timeout and retry
    policy. Construct one where it is needed (or inject a test double) and
    pass it to the services; there is no process-wide client.

    Usage:
        adapter = StripeAdapter(retry_policy=RetryPolicy(max_attempts=1))
        result = adapter.capture_hold("pi_xxx", idempotency_key=key)
    """

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.timeout = (
            timeout
            if timeout is not None
            else getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 20)
        )
        self._sleep = sleep
        self._configure_stripe()

    # =========================================================================
    # Configuration
    # =========================================================================

    def _configure_stripe(self) -> None:
        """Bound every request by the timeout; retries belong to the policy."""
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)
        stripe.max_network_retries = 0

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_hold(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntentResult:
        """
        Open a manual-capture card authorization.

        Returns:
            PaymentIntentResult including the client_secret for the payer

        Raises:
            ProcessorError: Stripe rejected the request
            ProcessorUnavailableError: Transient failure, retries exhausted
        """
        log_context = {
            "operation": "create_hold",
            "amount_cents": amount_cents,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }

        intent = self._execute(
            log_context,
            lambda: stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency,
                capture_method="manual",
                payment_method_types=["card"],
                metadata=metadata,
                api_key=self.api_key,
                idempotency_key=idempotency_key,
            ),
            result_ids=lambda pi: {"payment_intent_id": pi.id, "status": pi.status},
        )
        return self._to_payment_intent_result(intent)

    def capture_hold(
        self,
        external_id: str,
        idempotency_key: str,
    ) -> PaymentIntentResult:
        """
        Capture a previously authorized PaymentIntent in full.

        Raises:
            ProcessorError: Stripe rejected the capture
            ProcessorUnavailableError: Transient failure, retries exhausted
        """
        log_context = {
            "operation": "capture_hold",
            "payment_intent_id": external_id,
            "idempotency_key": idempotency_key,
        }

        intent = self._execute(
            log_context,
            lambda: stripe.PaymentIntent.capture(
                external_id,
                api_key=self.api_key,
                idempotency_key=idempotency_key,
            ),
            result_ids=lambda pi: {"status": pi.status},
        )
        return self._to_payment_intent_result(intent)

    def create_transfer(
        self,
        amount_cents: int,
        destination_account: str,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        source_transaction: str | None = None,
    ) -> TransferResult:
        """
        Transfer funds to a connected account.

        Raises:
            ProcessorInvalidAccountError: Destination account rejected
            ProcessorError: Other rejections
            ProcessorUnavailableError: Transient failure, retries exhausted
        """
        log_context = {
            "operation": "create_transfer",
            "amount_cents": amount_cents,
            "destination_account": destination_account,
            "idempotency_key": idempotency_key,
        }

        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "destination": destination_account,
            "metadata": metadata,
        }
        if source_transaction:
            params["source_transaction"] = source_transaction

        transfer = self._execute(
            log_context,
            lambda: stripe.Transfer.create(
                **params,
                api_key=self.api_key,
                idempotency_key=idempotency_key,
            ),
            result_ids=lambda tr: {"transfer_id": tr.id},
        )
        return TransferResult(
            id=transfer.id,
            amount_cents=transfer.amount,
            currency=transfer.currency,
            destination_account=transfer.destination,
            metadata=dict(transfer.metadata or {}),
            raw_response=transfer.to_dict(),
        )

    # =========================================================================
    # Connect Accounts
    # =========================================================================

    def create_express_account(
        self,
        email: str | None,
        country: str,
        metadata: dict[str, str],
    ) -> AccountResult:
        """
        Create an Express connected account.

        Stripe rejects countries Connect does not support; in that case the
        account is created in STRIPE_CONNECT_DEFAULT_COUNTRY instead.
        """
        try:
            return self._create_express_account(email, country, metadata)
        except ProcessorError as e:
            default_country = getattr(settings, "STRIPE_CONNECT_DEFAULT_COUNTRY", "US")
            if (
                isinstance(e, ProcessorUnavailableError)
                or country.upper() == default_country.upper()
                or e.details.get("param") != "country"
            ):
                raise
            self.get_logger().warning(
                "Country rejected for connected account, using default",
                extra={"requested_country": country, "country": default_country},
            )
            return self._create_express_account(email, default_country, metadata)

    def _create_express_account(
        self,
        email: str | None,
        country: str,
        metadata: dict[str, str],
    ) -> AccountResult:
        log_context = {"operation": "create_express_account", "country": country}

        params: dict[str, Any] = {
            "type": "express",
            "country": country,
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "settings": {"payouts": {"schedule": {"interval": "daily"}}},
            "metadata": metadata,
        }
        if email:
            params["email"] = email

        account = self._execute(
            log_context,
            lambda: stripe.Account.create(**params, api_key=self.api_key),
            result_ids=lambda acct: {"account_id": acct.id},
        )
        return self._to_account_result(account)

    def create_account_link(self, account_id: str) -> str:
        """Create a one-time onboarding link; returns its URL."""
        log_context = {"operation": "create_account_link", "account_id": account_id}

        link = self._execute(
            log_context,
            lambda: stripe.AccountLink.create(
                account=account_id,
                refresh_url=settings.STRIPE_REFRESH_URL,
                return_url=settings.STRIPE_RETURN_URL,
                type="account_onboarding",
                api_key=self.api_key,
            ),
        )
        return link.url

    def retrieve_account(self, account_id: str) -> AccountResult:
        log_context = {"operation": "retrieve_account", "account_id": account_id}

        account = self._execute(
            log_context,
            lambda: stripe.Account.retrieve(account_id, api_key=self.api_key),
        )
        return self._to_account_result(account)

    def list_external_accounts(self, account_id: str) -> list[ExternalAccountResult]:
        """Bank accounts and debit cards the connected account can pay out to."""
        log_context = {"operation": "list_external_accounts", "account_id": account_id}

        accounts = self._execute(
            log_context,
            lambda: stripe.Account.list_external_accounts(
                account_id,
                limit=100,
                api_key=self.api_key,
            ),
            result_ids=lambda page: {"count": len(page.data)},
        )
        return [self._to_external_account_result(item) for item in accounts.data]

    def update_payout_schedule(
        self,
        account_id: str,
        interval: str,
        delay_days: int | None = None,
    ) -> AccountResult:
        """
        Change how often Stripe pays the connected account's balance out.

        delay_days is ignored for the manual interval.
        """
        log_context = {
            "operation": "update_payout_schedule",
            "account_id": account_id,
            "interval": interval,
        }

        schedule: dict[str, Any] = {"interval": interval}
        if delay_days is not None and interval != "manual":
            schedule["delay_days"] = delay_days

        account = self._execute(
            log_context,
            lambda: stripe.Account.modify(
                account_id,
                settings={"payouts": {"schedule": schedule}},
                api_key=self.api_key,
            ),
        )
        return self._to_account_result(account)

    def retrieve_balance(self, account_id: str) -> BalanceResult:
        log_context = {"operation": "retrieve_balance", "account_id": account_id}

        balance = self._execute(
            log_context,
            lambda: stripe.Balance.retrieve(
                stripe_account=account_id,
                api_key=self.api_key,
            ),
        )
        return BalanceResult(
            available=[
                BalanceAmount(amount_cents=b["amount"], currency=b["currency"])
                for b in balance.available or []
            ],
            pending=[
                BalanceAmount(amount_cents=b["amount"], currency=b["currency"])
                for b in balance.pending or []
            ],
        )

    # =========================================================================
    # Connected Account Payouts
    # =========================================================================

    def create_payout(
        self,
        account_id: str,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        method: str = "instant",
        destination: str | None = None,
    ) -> PayoutResult:
        """
        Pay a connected account's balance out to one of its external accounts.

        Raises:
            ProcessorInsufficientFundsError: Balance does not cover the amount
            ProcessorError: Other rejections (e.g. instant not supported)
            ProcessorUnavailableError: Transient failure, retries exhausted
        """
        log_context = {
            "operation": "create_payout",
            "account_id": account_id,
            "amount_cents": amount_cents,
            "method": method,
            "idempotency_key": idempotency_key,
        }

        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "method": method,
            "metadata": metadata,
        }
        if destination:
            params["destination"] = destination

        payout = self._execute(
            log_context,
            lambda: stripe.Payout.create(
                **params,
                stripe_account=account_id,
                api_key=self.api_key,
                idempotency_key=idempotency_key,
            ),
            result_ids=lambda po: {"payout_id": po.id, "status": po.status},
        )
        return self._to_payout_result(payout)

    def retrieve_payout(self, account_id: str, payout_id: str) -> PayoutResult:
        log_context = {
            "operation": "retrieve_payout",
            "account_id": account_id,
            "payout_id": payout_id,
        }

        payout = self._execute(
            log_context,
            lambda: stripe.Payout.retrieve(
                payout_id,
                stripe_account=account_id,
                api_key=self.api_key,
            ),
        )
        return self._to_payout_result(payout)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            SignatureVerificationFailedError: Invalid signature or body
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                self.webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureVerificationFailedError(
                "Invalid webhook signature",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise SignatureVerificationFailedError(
                "Invalid webhook payload",
                details={"error": str(e)},
            ) from e
        return event.to_dict()

    # =========================================================================
    # Execution & Error Handling
    # =========================================================================

    def _execute(
        self,
        log_context: dict[str, Any],
        call: Callable[[], T],
        result_ids: Callable[[T], dict[str, Any]] | None = None,
    ) -> T:
        """
        Run a Stripe call under the retry policy.

        Transient failures are retried with backoff until the policy is
        exhausted, then raised as ProcessorUnavailableError. Rejections are
        translated and raised on the first occurrence.
        """
        logger = self.get_logger()
        max_attempts = self.retry_policy.max_attempts
        last_transient: _TransientProcessorError | None = None

        for attempt in range(max_attempts):
            attempt_context = {**log_context, "attempt": attempt + 1}
            start_time = time.time()
            logger.info("Starting Stripe operation", extra=attempt_context)

            try:
                result = call()
            except stripe.StripeError as e:
                duration_ms = (time.time() - start_time) * 1000
                try:
                    self._handle_stripe_error(e, attempt_context, duration_ms)
                except _TransientProcessorError as transient:
                    last_transient = transient
                    if attempt + 1 < max_attempts:
                        self._sleep(self.retry_policy.delay_for(attempt))
                    continue

            duration_ms = (time.time() - start_time) * 1000
            extra = {**attempt_context, "duration_ms": duration_ms}
            if result_ids is not None:
                extra.update(result_ids(result))
            logger.info("Stripe operation completed", extra=extra)
            return result

        logger.error(
            "Stripe operation failed after retries",
            extra={**log_context, "attempts": max_attempts},
        )
        raise ProcessorUnavailableError(
            str(last_transient) if last_transient else "Stripe unavailable",
            processor_code=last_transient.processor_code if last_transient else None,
            details={"operation": log_context.get("operation"), "attempts": max_attempts},
        )

    def _handle_stripe_error(
        self,
        error: stripe.StripeError,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a Stripe exception.

        Always raises: a ProcessorError subclass for rejections, or the
        internal transient marker for failures the retry loop handles.
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            exc_class = (
                ProcessorInsufficientFundsError
                if decline_code == "insufficient_funds"
                else ProcessorCardDeclinedError
            )
            raise exc_class(
                str(error.user_message or error),
                processor_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            param = getattr(error, "param", None)
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code, "param": param},
            )
            details = {"param": param} if param else {}
            if error.code == "balance_insufficient":
                raise ProcessorInsufficientFundsError(
                    str(error),
                    processor_code=error.code,
                    details=details,
                ) from error
            if param in ("destination", "account") or (error.code or "").startswith(
                "account_"
            ):
                raise ProcessorInvalidAccountError(
                    str(error),
                    processor_code=error.code,
                    details=details,
                ) from error
            raise ProcessorError(
                str(error),
                error_code="INVALID_REQUEST",
                processor_code=error.code,
                details=details,
            ) from error

        if isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise ProcessorError(
                "Stripe authentication failed",
                error_code="AUTHENTICATION_FAILED",
                processor_code="authentication_error",
            ) from error

        if isinstance(error, stripe.IdempotencyError):
            logger.error("Idempotency key reused with different parameters", extra=log_context)
            raise ProcessorError(
                str(error),
                error_code="IDEMPOTENCY_CONFLICT",
                processor_code=error.code,
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise _TransientProcessorError("Stripe rate limit exceeded", "rate_limit")

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise _TransientProcessorError(
                "Could not connect to Stripe", "api_connection_error"
            )

        http_status = getattr(error, "http_status", None)
        if isinstance(error, stripe.APIError) or (http_status or 0) >= 500:
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise _TransientProcessorError("Stripe service error", "api_error")

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise ProcessorError(
            str(error),
            processor_code=getattr(error, "code", None) or "unknown_error",
        ) from error

    # =========================================================================
    # Result Mapping
    # =========================================================================

    @staticmethod
    def _to_payment_intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            metadata=dict(intent.metadata or {}),
            raw_response=intent.to_dict(),
        )

    @staticmethod
    def _to_account_result(account: Any) -> AccountResult:
        raw = account.to_dict()
        payout_settings = (raw.get("settings") or {}).get("payouts") or {}
        capabilities = raw.get("capabilities") or {}
        return AccountResult(
            id=account.id,
            country=account.country,
            charges_enabled=bool(account.charges_enabled),
            payouts_enabled=bool(account.payouts_enabled),
            details_submitted=bool(account.details_submitted),
            transfers_active=capabilities.get("transfers") == "active",
            payout_schedule=payout_settings.get("schedule"),
            raw_response=raw,
        )

    @staticmethod
    def _to_payout_result(payout: Any) -> PayoutResult:
        return PayoutResult(
            id=payout.id,
            status=payout.status,
            amount_cents=payout.amount,
            currency=payout.currency,
            method=payout.method or "standard",
            destination=payout.destination,
            arrival_date=payout.arrival_date,
            failure_code=payout.failure_code,
            failure_message=payout.failure_message,
            metadata=dict(payout.metadata or {}),
            raw_response=payout.to_dict(),
        )

    @staticmethod
    def _to_external_account_result(item: Any) -> ExternalAccountResult:
        return ExternalAccountResult(
            id=item.id,
            type="debit_card" if item.object == "card" else "bank_account",
            last4=getattr(item, "last4", None),
            brand=getattr(item, "brand", None),
            bank_name=getattr(item, "bank_name", None),
            currency=getattr(item, "currency", None),
            country=getattr(item, "country", None),
            default_for_currency=bool(getattr(item, "default_for_currency", False)),
            status=getattr(item, "status", None) or "new",
            available_payout_methods=list(
                getattr(item, "available_payout_methods", None) or []
            ),
        )
