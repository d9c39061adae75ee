from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ComplianceViolation",
            fields=[
                ("id", models.UUIDField(editable=False, help_text="Unique identifier for the compliance violation", primary_key=True, serialize=False)),
                ("driver_id", models.CharField(db_index=True, max_length=64)),
                ("violation_type", models.CharField(choices=[("daily_driving_limit", "Daily Driving Limit"), ("weekly_driving_limit", "Cycle (Weekly) Limit"), ("on_duty_limit", "Daily On-Duty Limit"), ("rest_break_required", "Rest Break Required"), ("shift_limit", "Shift (Duty Window) Limit")], help_text="Type of HOS violation", max_length=30)),
                ("severity", models.CharField(choices=[("warning", "Warning"), ("critical", "Critical")], default="warning", help_text="Severity level of the violation", max_length=10)),
                ("triggering_entry_id", models.UUIDField(blank=True, help_text="Duty status entry during which the limit was first exceeded", null=True)),
                ("rule_set_key", models.CharField(max_length=50)),
                ("description", models.CharField(help_text="Description of the violation", max_length=200)),
                ("used_seconds", models.PositiveIntegerField(help_text="Time used against the limit, in seconds")),
                ("limit_seconds", models.PositiveIntegerField(help_text="Regulatory limit, in seconds")),
                ("detected_at", models.DateTimeField(help_text="When the violation was detected")),
                ("is_resolved", models.BooleanField(default=False, help_text="Whether the violation has been resolved")),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("resolved_by", models.CharField(blank=True, max_length=64)),
                ("resolution_notes", models.TextField(blank=True, help_text="Notes on how the violation was resolved")),
            ],
            options={
                "verbose_name": "Compliance Violation",
                "verbose_name_plural": "Compliance Violations",
                "db_table": "hos_compliance_complianceviolation",
                "ordering": ["detected_at"],
                "indexes": [
                    models.Index(fields=["driver_id", "is_resolved"], name="violation_driver_open_idx"),
                    models.Index(fields=["severity"], name="violation_severity_idx"),
                    models.Index(fields=["violation_type"], name="violation_type_idx"),
                ],
            },
        ),
    ]
