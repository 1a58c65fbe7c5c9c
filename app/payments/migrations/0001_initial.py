import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier (UUID4)",
            primary_key=True,
            serialize=False,
        ),
    )


def _metadata():
    return (
        "metadata",
        models.JSONField(
            blank=True,
            default=dict,
            help_text="Opaque key/value metadata",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("cleanups", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Hold",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _metadata(),
                (
                    "external_id",
                    models.CharField(
                        help_text="Processor authorization id (pi_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveIntegerField(
                        help_text="Held amount in minor currency units",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("donation", "Donation"),
                            ("request_cost", "Request Cost"),
                        ],
                        default="donation",
                        help_text="What the hold pays for",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("requires_capture", "Requires Capture"),
                            ("succeeded", "Succeeded"),
                            ("canceled", "Canceled"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Current status of the hold (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payer",
                    models.ForeignKey(
                        help_text="User whose funds are held",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="holds",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "request",
                    models.ForeignKey(
                        help_text="Cleanup request the hold pays for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="holds",
                        to="cleanups.cleanuprequest",
                    ),
                ),
            ],
            options={
                "verbose_name": "Hold",
                "verbose_name_plural": "Holds",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["request", "status"],
                        name="payments_hold_req_status_idx",
                    ),
                    models.Index(
                        fields=["payer", "-created_at"],
                        name="payments_hold_payer_ts_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="hold_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Donation",
            fields=[
                _uuid_pk(),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Donated amount in major currency units",
                        max_digits=12,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="When the donation was made",
                    ),
                ),
                (
                    "donor",
                    models.ForeignKey(
                        help_text="User who donated",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="donations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "hold",
                    models.OneToOneField(
                        blank=True,
                        help_text="Authorization hold backing this donation",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="donation",
                        to="payments.hold",
                    ),
                ),
                (
                    "request",
                    models.ForeignKey(
                        help_text="Cleanup request donated to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="donations",
                        to="cleanups.cleanuprequest",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _metadata(),
                (
                    "external_id",
                    models.CharField(
                        blank=True,
                        help_text="Processor transfer id (tr_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "net_amount_cents",
                    models.IntegerField(
                        help_text="Amount transferred to the performer in minor units",
                    ),
                ),
                (
                    "platform_fee_cents",
                    models.IntegerField(
                        default=0,
                        help_text="Platform fee in minor units",
                    ),
                ),
                (
                    "processor_fee_cents",
                    models.IntegerField(
                        default=0,
                        help_text="Processor fee in minor units",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current status of the payout (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Failure reason reported by the processor",
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the processor reported the transfer paid",
                        null=True,
                    ),
                ),
                (
                    "performer",
                    models.ForeignKey(
                        help_text="Performer receiving the funds",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "request",
                    models.OneToOneField(
                        help_text="Cleanup request this payout settles",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout",
                        to="cleanups.cleanuprequest",
                    ),
                ),
                (
                    "source_hold",
                    models.ForeignKey(
                        blank=True,
                        help_text="First captured hold of the settlement",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="payments.hold",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout",
                "verbose_name_plural": "Payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["performer", "-created_at"],
                        name="payments_payout_perf_ts_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("net_amount_cents__gte", 0)),
                        name="payout_net_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("platform_fee_cents__gte", 0),
                            ("processor_fee_cents__gte", 0),
                        ),
                        name="payout_fees_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PayoutAccount",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "external_account_id",
                    models.CharField(
                        help_text="Processor connected account id (acct_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "charges_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the account can accept charges",
                    ),
                ),
                (
                    "payouts_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the account can receive payouts",
                    ),
                ),
                (
                    "details_submitted",
                    models.BooleanField(
                        default=False,
                        help_text="Whether onboarding details have been submitted",
                    ),
                ),
                (
                    "country",
                    models.CharField(
                        default="US",
                        help_text="ISO 3166-1 alpha-2 country of the account",
                        max_length=2,
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User who owns this payout account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout Account",
                "verbose_name_plural": "Payout Accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "event_id",
                    models.CharField(
                        help_text="Processor event id (evt_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Processor event type (e.g. 'transfer.paid')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Verified event body"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "retry_count"],
                        name="payments_webhook_status_idx",
                    ),
                ],
            },
        ),
    ]
