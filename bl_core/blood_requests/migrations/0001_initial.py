import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BloodRequest",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("hospital_name", models.CharField(max_length=200)),
                (
                    "blood_type",
                    models.CharField(
                        choices=[
                            ("A+", "A+"),
                            ("A-", "A-"),
                            ("B+", "B+"),
                            ("B-", "B-"),
                            ("AB+", "AB+"),
                            ("AB-", "AB-"),
                            ("O+", "O+"),
                            ("O-", "O-"),
                        ],
                        db_index=True,
                        max_length=3,
                    ),
                ),
                ("units", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                (
                    "urgency",
                    models.CharField(
                        choices=[("emergency", "Emergency"), ("urgent", "Urgent"), ("routine", "Routine")],
                        max_length=16,
                    ),
                ),
                ("patient_info", models.TextField(blank=True)),
                ("contact_person", models.CharField(blank=True, max_length=200)),
                ("contact_phone", models.CharField(blank=True, max_length=32)),
                ("notes", models.TextField(blank=True)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("fulfilled", "Fulfilled"), ("cancelled", "Cancelled")],
                        db_index=True,
                        default="active",
                        max_length=16,
                    ),
                ),
                ("responses", models.JSONField(blank=True, default=list)),
                ("version", models.PositiveIntegerField(default=0)),
                (
                    "hospital",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blood_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "blood_requests_blood_request",
                "indexes": [models.Index(fields=["status", "blood_type"], name="blood_req_status_type_idx")],
            },
        ),
        migrations.CreateModel(
            name="RequestIndexEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("index_key", models.CharField(max_length=64)),
                ("request_id", models.UUIDField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "blood_requests_index_entry",
                "indexes": [models.Index(fields=["request_id"], name="blood_req_index_req_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("index_key", "request_id"), name="uq_index_key_request"),
                ],
            },
        ),
    ]
