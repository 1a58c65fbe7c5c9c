"""
DRF views for the payments app.

This module provides API views for:
- Hold creation (donations and request-cost payments)
- Settlement of completed cleanup requests
- Hold and payout history
- Payout account onboarding and status
- Instant payouts, payout schedule, payout methods and balance

Related files:
    - services/: HoldService, SettlementService, PayoutAccountService,
      InstantPayoutService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Processor webhook endpoint (plain Django view)
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/holds/ - Create a hold
    POST /api/v1/payments/settle/ - Settle a cleanup request
    GET /api/v1/payments/history/?user_id= - Hold history
    GET /api/v1/payouts/history/?user_id= - Payout history
    POST /api/v1/payouts/accounts/ - Start payout account onboarding
    GET /api/v1/payouts/accounts/status/ - Payout account status
    POST /api/v1/payouts/instant/ - Create an instant payout
    GET /api/v1/payouts/instant/history/?user_id= - Instant payout history
    PUT /api/v1/payouts/accounts/schedule/ - Update payout schedule
    GET /api/v1/payouts/accounts/methods/ - Payout methods
    GET /api/v1/payouts/accounts/balance/ - Connected account balance

Errors:
    Service exceptions are answered with {"error", "error_code", "details"}
    and the HTTP status from ERROR_STATUS_MAP.
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.db.models import QuerySet
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

from payments.adapters import StripeAdapter
from payments.exceptions import (
    InsufficientSettlementAmountError,
    ProcessorError,
    ProcessorUnavailableError,
    SignatureVerificationFailedError,
)
from payments.models import Hold, InstantPayout, Payout
from payments.serializers import (
    AccountBalanceSerializer,
    AccountOwnerQuerySerializer,
    AccountStatusResponseSerializer,
    CreateHoldSerializer,
    CreateInstantPayoutSerializer,
    HistoryQuerySerializer,
    HoldCreatedSerializer,
    HoldSerializer,
    InstantPayoutSerializer,
    OnboardingResponseSerializer,
    PayoutMethodsSerializer,
    PayoutScheduleResponseSerializer,
    PayoutScheduleSerializer,
    PayoutSerializer,
    SettlementSummarySerializer,
    SettleRequestSerializer,
    StartOnboardingSerializer,
)
from payments.services import (
    HoldService,
    InstantPayoutService,
    PayoutAccountService,
    SettlementService,
)

logger = logging.getLogger(__name__)


# Most specific first; the first isinstance match wins.
ERROR_STATUS_MAP: list[tuple[type[BaseApplicationError], int]] = [
    (ProcessorUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ProcessorError, status.HTTP_402_PAYMENT_REQUIRED),
    (InsufficientSettlementAmountError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SignatureVerificationFailedError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
]


def status_for_error(exc: BaseApplicationError) -> int:
    for error_class, http_status in ERROR_STATUS_MAP:
        if isinstance(exc, error_class):
            return http_status
    return status.HTTP_400_BAD_REQUEST


HISTORY_PARAMETERS = [
    OpenApiParameter(
        name="user_id",
        type=int,
        location=OpenApiParameter.QUERY,
        description="User whose history to list (must be the caller unless admin)",
        required=True,
    ),
    OpenApiParameter(
        name="page",
        type=int,
        location=OpenApiParameter.QUERY,
        description="1-based page number (default 1)",
        required=False,
    ),
    OpenApiParameter(
        name="limit",
        type=int,
        location=OpenApiParameter.QUERY,
        description="Page size (default 20, clamped to 1..100)",
        required=False,
    ),
]


class PaymentsAPIView(APIView):
    """
    Base view for payment endpoints.

    Translates BaseApplicationError into the error envelope and builds the
    processor adapter the services are given.
    """

    permission_classes = [IsAuthenticated]

    def get_processor(self) -> StripeAdapter:
        return StripeAdapter()

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            http_status = status_for_error(exc)
            log = logger.error if http_status >= 500 else logger.info
            log(
                f"Request failed: {exc.error_code}",
                extra={
                    "path": self.request.path,
                    "error_code": exc.error_code,
                    "status": http_status,
                },
            )
            return Response(exc.to_dict(), status=http_status)
        return super().handle_exception(exc)


class HistoryView(PaymentsAPIView):
    """Paginated history of the user named by ?user_id=."""

    serializer_class = None

    def get_queryset(self, user_id: int) -> QuerySet:
        raise NotImplementedError

    def prepare_items(self, items: QuerySet) -> Iterable:
        return items

    def get(self, request):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        user_id = query.validated_data["user_id"]
        page = query.validated_data["page"]
        limit = query.validated_data["limit"]

        if user_id != request.user.pk and not request.user.is_staff:
            raise PermissionDeniedError(
                "You can only view your own history",
                details={"user_id": user_id},
            )

        queryset = self.get_queryset(user_id)
        offset = (page - 1) * limit
        items = self.prepare_items(queryset[offset : offset + limit])

        return Response(
            {
                "items": self.serializer_class(items, many=True).data,
                "total": queryset.count(),
                "page": page,
                "limit": limit,
            }
        )


# =============================================================================
# Holds & Settlement
# =============================================================================


class CreateHoldView(PaymentsAPIView):
    """
    Create an authorization hold.

    POST /api/v1/payments/holds/

    Request body:
        {
            "user_id": 42,
            "request_id": "uuid",
            "amount_cents": 5000,
            "kind": "donation"
        }

    user_id is optional and defaults to the caller.

    Returns:
        201 {"hold_id", "external_id", "client_handle"}
    """

    @extend_schema(
        operation_id="create_hold",
        summary="Create a hold",
        description=(
            "Authorize funds on the payer's card for a cleanup request. "
            "Donation holds immediately count toward the request's "
            "contributed total."
        ),
        request=CreateHoldSerializer,
        responses={
            201: HoldCreatedSerializer,
            400: OpenApiResponse(description="Amount too small or unknown kind"),
            402: OpenApiResponse(description="Processor rejected the authorization"),
            403: OpenApiResponse(description="Caller is not the payer"),
            404: OpenApiResponse(description="Request or payer not found"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreateHoldSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = HoldService(processor=self.get_processor()).create_hold(
            caller=request.user,
            payer_id=data.get("user_id", request.user.pk),
            request_id=data["request_id"],
            amount_cents=data["amount_cents"],
            kind=data["kind"],
        )

        output = HoldCreatedSerializer(
            {
                "hold_id": result.hold.id,
                "external_id": result.hold.external_id,
                "client_handle": result.client_handle,
            }
        )
        return Response(output.data, status=status.HTTP_201_CREATED)


class SettleRequestView(PaymentsAPIView):
    """
    Settle a completed cleanup request.

    POST /api/v1/payments/settle/

    Request body:
        {"request_id": "uuid", "performer_user_id": 7}

    Returns:
        Settlement summary; repeated calls return the existing payout
        with "created": false
    """

    @extend_schema(
        operation_id="settle_request",
        summary="Settle a cleanup request",
        description=(
            "Capture the request's holds, split off platform and processor "
            "fees and transfer the net amount to the performer. Holds that "
            "fail to capture are listed in failed_captures."
        ),
        request=SettleRequestSerializer,
        responses={
            200: SettlementSummarySerializer,
            402: OpenApiResponse(description="Transfer rejected by the processor"),
            403: OpenApiResponse(description="Caller is not the request creator"),
            404: OpenApiResponse(description="Request or payout account not found"),
            409: OpenApiResponse(description="Settlement already in progress"),
            422: OpenApiResponse(description="Captured total does not cover fees"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = SettleRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = SettlementService(processor=self.get_processor()).settle_request(
            request_id=serializer.validated_data["request_id"],
            performer_user_id=serializer.validated_data["performer_user_id"],
            caller=request.user,
        )
        return Response(SettlementSummarySerializer(result).data)


@extend_schema(
    operation_id="list_hold_history",
    summary="Hold history",
    parameters=HISTORY_PARAMETERS,
    responses={200: OpenApiResponse(description="{items, total, page, limit}")},
    tags=["Payments"],
)
class HoldHistoryView(HistoryView):
    """GET /api/v1/payments/history/?user_id= - holds paid by the user, newest first."""

    serializer_class = HoldSerializer

    def get_queryset(self, user_id: int) -> QuerySet:
        return Hold.objects.filter(payer_id=user_id).order_by("-created_at")


# =============================================================================
# Payouts
# =============================================================================


@extend_schema(
    operation_id="list_payout_history",
    summary="Payout history",
    parameters=HISTORY_PARAMETERS,
    responses={200: OpenApiResponse(description="{items, total, page, limit}")},
    tags=["Payouts"],
)
class PayoutHistoryView(HistoryView):
    """GET /api/v1/payouts/history/?user_id= - payouts received by the performer."""

    serializer_class = PayoutSerializer

    def get_queryset(self, user_id: int) -> QuerySet:
        return Payout.objects.filter(performer_id=user_id).order_by("-created_at")


class PayoutAccountView(PaymentsAPIView):
    """
    Start onboarding for the caller's payout account.

    POST /api/v1/payouts/accounts/

    Request body:
        {"country": "GB", "email": "performer@example.com"}  # both optional

    Returns:
        201 when the account was created, 200 when an existing account
        got a fresh onboarding link
    """

    @extend_schema(
        operation_id="start_payout_onboarding",
        summary="Start payout onboarding",
        request=StartOnboardingSerializer,
        responses={
            200: OnboardingResponseSerializer,
            201: OnboardingResponseSerializer,
            402: OpenApiResponse(description="Processor rejected the account"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payouts"],
    )
    def post(self, request):
        serializer = StartOnboardingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayoutAccountService(processor=self.get_processor()).start_onboarding(
            request.user,
            country=serializer.validated_data.get("country"),
            email=serializer.validated_data.get("email"),
        )
        output = OnboardingResponseSerializer(result)
        return Response(
            output.data,
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )


class PayoutAccountStatusView(PaymentsAPIView):
    """
    Refresh and report the caller's payout account status.

    GET /api/v1/payouts/accounts/status/
    """

    @extend_schema(
        operation_id="get_payout_account_status",
        summary="Payout account status",
        responses={
            200: AccountStatusResponseSerializer,
            404: OpenApiResponse(description="No payout account yet"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payouts"],
    )
    def get(self, request):
        result = PayoutAccountService(processor=self.get_processor()).refresh_status(
            request.user
        )
        return Response(AccountStatusResponseSerializer(result).data)


# =============================================================================
# Instant Payouts & Payout Settings
# =============================================================================


OWNER_PARAMETER = OpenApiParameter(
    name="user_id",
    type=int,
    location=OpenApiParameter.QUERY,
    description="Account owner; defaults to the caller (admins may read others)",
    required=False,
)


def owner_id(request, data: dict) -> int:
    """user_id from validated data, defaulting to the caller."""
    user_id = data.get("user_id")
    return request.user.pk if user_id is None else user_id


class InstantPayoutView(PaymentsAPIView):
    """
    Pay the connected account's balance out immediately.

    POST /api/v1/payouts/instant/

    Request body:
        {"amount_cents": 2500, "external_account_id": "card_xxx"}

    user_id is optional and defaults to the caller.
    """

    @extend_schema(
        operation_id="create_instant_payout",
        summary="Create an instant payout",
        request=CreateInstantPayoutSerializer,
        responses={
            201: InstantPayoutSerializer,
            400: OpenApiResponse(description="Amount too small"),
            402: OpenApiResponse(description="Insufficient balance or payout rejected"),
            403: OpenApiResponse(description="Caller is not the account owner"),
            404: OpenApiResponse(description="No payout-enabled account"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payouts"],
    )
    def post(self, request):
        serializer = CreateInstantPayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = InstantPayoutService(processor=self.get_processor())
        payout = service.create_instant_payout(
            caller=request.user,
            user_id=owner_id(request, data),
            amount_cents=data["amount_cents"],
            destination=data.get("external_account_id"),
        )
        return Response(
            InstantPayoutSerializer(payout).data,
            status=status.HTTP_201_CREATED,
        )


@extend_schema(
    operation_id="list_instant_payout_history",
    summary="Instant payout history",
    parameters=HISTORY_PARAMETERS,
    responses={200: OpenApiResponse(description="{items, total, page, limit}")},
    tags=["Payouts"],
)
class InstantPayoutHistoryView(HistoryView):
    """
    GET /api/v1/payouts/instant/history/?user_id= - instant payouts, newest first.

    Payouts still in flight on the page are re-read from the processor.
    """

    serializer_class = InstantPayoutSerializer

    def get_queryset(self, user_id: int) -> QuerySet:
        return InstantPayout.objects.filter(user_id=user_id).order_by("-created_at")

    def prepare_items(self, items: QuerySet) -> Iterable:
        return InstantPayoutService(processor=self.get_processor()).refresh(items)


class PayoutScheduleView(PaymentsAPIView):
    """
    Change how often the connected account is paid out.

    PUT /api/v1/payouts/accounts/schedule/

    Request body:
        {"interval": "weekly", "delay_days": 7}
    """

    @extend_schema(
        operation_id="update_payout_schedule",
        summary="Update payout schedule",
        request=PayoutScheduleSerializer,
        responses={
            200: PayoutScheduleResponseSerializer,
            400: OpenApiResponse(description="Unknown interval or delay out of range"),
            403: OpenApiResponse(description="Caller is not the account owner"),
            404: OpenApiResponse(description="No payout account"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payouts"],
    )
    def put(self, request):
        serializer = PayoutScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user_id = owner_id(request, data)

        service = PayoutAccountService(processor=self.get_processor())
        schedule = service.update_payout_schedule(
            caller=request.user,
            user_id=user_id,
            interval=data["interval"],
            delay_days=data.get("delay_days"),
        )
        output = PayoutScheduleResponseSerializer(
            {
                "account_id": service.get_account(user_id).external_account_id,
                "payout_schedule": schedule,
            }
        )
        return Response(output.data)


class PayoutMethodsView(PaymentsAPIView):
    """
    Bank accounts and debit cards the account can be paid out to.

    GET /api/v1/payouts/accounts/methods/?user_id=
    """

    @extend_schema(
        operation_id="list_payout_methods",
        summary="Payout methods",
        parameters=[OWNER_PARAMETER],
        responses={
            200: PayoutMethodsSerializer,
            403: OpenApiResponse(description="Caller is not the account owner"),
            404: OpenApiResponse(description="No payout account"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payouts"],
    )
    def get(self, request):
        query = AccountOwnerQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        service = PayoutAccountService(processor=self.get_processor())
        result = service.list_payout_methods(
            caller=request.user,
            user_id=owner_id(request, query.validated_data),
        )
        return Response(PayoutMethodsSerializer(result).data)


class PayoutBalanceView(PaymentsAPIView):
    """
    Connected account balance with the latest instant payouts.

    GET /api/v1/payouts/accounts/balance/?user_id=
    """

    @extend_schema(
        operation_id="get_payout_balance",
        summary="Payout balance",
        parameters=[OWNER_PARAMETER],
        responses={
            200: AccountBalanceSerializer,
            403: OpenApiResponse(description="Caller is not the account owner"),
            404: OpenApiResponse(description="No payout account"),
            503: OpenApiResponse(description="Processor unavailable"),
        },
        tags=["Payouts"],
    )
    def get(self, request):
        query = AccountOwnerQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = PayoutAccountService(processor=self.get_processor()).get_balance(
            caller=request.user,
            user_id=owner_id(request, query.validated_data),
        )
        return Response(AccountBalanceSerializer(result).data)
