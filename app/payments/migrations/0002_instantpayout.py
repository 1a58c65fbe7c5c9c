import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("payments", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="InstantPayout",
            fields=[
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
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Opaque key/value metadata",
                    ),
                ),
                (
                    "account_id",
                    models.CharField(
                        db_index=True,
                        help_text="Connected account id (acct_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "external_id",
                    models.CharField(
                        help_text="Processor payout id (po_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "amount_cents",
                    models.IntegerField(help_text="Amount in minor units"),
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
                    "method",
                    models.CharField(
                        default="instant",
                        help_text="Payout speed: instant or standard",
                        max_length=20,
                    ),
                ),
                (
                    "destination",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="External account id the funds were sent to",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_transit", "In transit"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("canceled", "Canceled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Processor-reported payout status",
                        max_length=20,
                    ),
                ),
                (
                    "arrival_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="Expected or actual arrival of the funds",
                        null=True,
                    ),
                ),
                (
                    "failure_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Processor failure code",
                        max_length=100,
                    ),
                ),
                (
                    "failure_message",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Processor failure message",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Owner of the connected account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="instant_payouts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Instant Payout",
                "verbose_name_plural": "Instant Payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "-created_at"],
                        name="payments_ipayout_user_ts_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="instant_payout_amount_positive",
                    ),
                ],
            },
        ),
    ]
