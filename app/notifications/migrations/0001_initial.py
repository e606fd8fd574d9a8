import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("NEW_SALE", "New sale"),
                            ("PURCHASE_CONFIRMED", "Purchase confirmed"),
                            ("ITEM_SHIPPED", "Item shipped"),
                            ("DELIVERY_CONFIRMED", "Delivery confirmed"),
                            ("FUNDS_RELEASED", "Funds released"),
                            ("DISPUTE_OPENED", "Dispute opened"),
                            ("DISPUTE_RESOLVED", "Dispute resolved"),
                            ("TRANSACTION_UPDATE", "Transaction update"),
                        ],
                        help_text="Notification type",
                        max_length=32,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField(blank=True, default="")),
                ("link", models.CharField(blank=True, default="", max_length=500)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("is_read", models.BooleanField(db_index=True, default=False)),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User receiving this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "is_read", "-created_at"], name="notif_recipient_unread_idx"
                    )
                ],
            },
        ),
    ]
