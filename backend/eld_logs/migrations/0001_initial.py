import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DutyStatusRecord",
            fields=[
                ("id", models.UUIDField(editable=False, help_text="Unique identifier for the duty status entry", primary_key=True, serialize=False)),
                ("driver_id", models.CharField(db_index=True, help_text="Driver this segment belongs to", max_length=64)),
                ("sequence", models.PositiveIntegerField(help_text="Order of this entry within the driver's ledger (1-based, gapless)")),
                ("status", models.CharField(choices=[("off_duty", "Off Duty"), ("sleeper_berth", "Sleeper Berth"), ("on_duty", "On Duty (Not Driving)"), ("driving", "Driving")], help_text="Duty status for this time period", max_length=20)),
                ("start_time", models.DateTimeField(help_text="When this duty status period started")),
                ("end_time", models.DateTimeField(blank=True, help_text="When this duty status period ended (null while open)", null=True)),
                ("latitude", models.DecimalField(blank=True, decimal_places=7, help_text="Latitude where duty status changed (-90 to 90)", max_digits=10, null=True)),
                ("longitude", models.DecimalField(blank=True, decimal_places=7, help_text="Longitude where duty status changed (-180 to 180)", max_digits=10, null=True)),
                ("address", models.CharField(blank=True, help_text="Location description (e.g., 'I-95 Mile 45', 'Rest Area', 'Customer Site')", max_length=200)),
                ("vehicle_id", models.CharField(blank=True, max_length=50)),
                ("trailer_id", models.CharField(blank=True, max_length=50)),
                ("odometer", models.DecimalField(blank=True, decimal_places=1, help_text="Vehicle odometer reading at status change", max_digits=12, null=True)),
                ("engine_hours", models.DecimalField(blank=True, decimal_places=1, help_text="Engine hours at status change", max_digits=10, null=True)),
                ("data_source", models.CharField(choices=[("automatic", "Automatic (ELD Generated)"), ("manual", "Manual Entry"), ("edited", "Edited Record")], default="manual", help_text="How this record was created", max_length=10)),
                ("remarks", models.CharField(blank=True, help_text="Additional remarks for this duty status change", max_length=200)),
                ("recorded_by", models.CharField(blank=True, help_text="Actor who appended this entry", max_length=64)),
                ("recorded_at", models.DateTimeField(help_text="When this entry was appended")),
                ("certified_at", models.DateTimeField(blank=True, help_text="When the driver certified this entry", null=True)),
                ("certified_by", models.CharField(blank=True, max_length=64)),
                ("amends_entry", models.ForeignKey(blank=True, help_text="Original entry this edited entry replaces", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="edits", to="eld_logs.dutystatusrecord")),
            ],
            options={
                "verbose_name": "Duty Status Record",
                "verbose_name_plural": "Duty Status Records",
                "db_table": "eld_logs_dutystatusrecord",
                "ordering": ["driver_id", "sequence"],
                "indexes": [
                    models.Index(fields=["driver_id", "start_time"], name="dsr_driver_start_idx"),
                    models.Index(fields=["driver_id", "end_time"], name="dsr_driver_end_idx"),
                    models.Index(fields=["status"], name="dsr_status_idx"),
                ],
                "unique_together": {("driver_id", "sequence")},
            },
        ),
        migrations.CreateModel(
            name="DriverLedgerHead",
            fields=[
                ("driver_id", models.CharField(help_text="Driver identifier", max_length=64, primary_key=True, serialize=False)),
                ("last_sequence", models.PositiveIntegerField(default=0, help_text="Sequence of the most recently committed entry")),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("open_entry", models.OneToOneField(blank=True, help_text="Currently open duty status entry", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="eld_logs.dutystatusrecord")),
            ],
            options={
                "verbose_name": "Driver Ledger Head",
                "verbose_name_plural": "Driver Ledger Heads",
                "db_table": "eld_logs_driverledgerhead",
            },
        ),
        migrations.CreateModel(
            name="AmendmentRecord",
            fields=[
                ("id", models.UUIDField(editable=False, primary_key=True, serialize=False)),
                ("driver_id", models.CharField(db_index=True, max_length=64)),
                ("requested_by", models.CharField(max_length=64)),
                ("requested_at", models.DateTimeField()),
                ("reason", models.TextField(help_text="Why the entry needs correcting")),
                ("proposed_status", models.CharField(blank=True, choices=[("off_duty", "Off Duty"), ("sleeper_berth", "Sleeper Berth"), ("on_duty", "On Duty (Not Driving)"), ("driving", "Driving")], max_length=20)),
                ("proposed_start", models.DateTimeField(blank=True, null=True)),
                ("proposed_end", models.DateTimeField(blank=True, null=True)),
                ("state", models.CharField(choices=[("pending", "Pending Review"), ("approved", "Approved"), ("rejected", "Rejected")], default="pending", max_length=10)),
                ("decided_by", models.CharField(blank=True, max_length=64)),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("decision_note", models.TextField(blank=True)),
                ("target_entry", models.ForeignKey(help_text="Duty status entry being corrected", on_delete=django.db.models.deletion.PROTECT, related_name="amendment_requests", to="eld_logs.dutystatusrecord")),
                ("resulting_entry", models.OneToOneField(blank=True, help_text="Edited entry created when the amendment was approved", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="source_amendment", to="eld_logs.dutystatusrecord")),
            ],
            options={
                "verbose_name": "Amendment Record",
                "verbose_name_plural": "Amendment Records",
                "db_table": "eld_logs_amendmentrecord",
                "ordering": ["requested_at"],
                "indexes": [
                    models.Index(fields=["driver_id", "state"], name="amendment_driver_state_idx"),
                    models.Index(fields=["target_entry", "state"], name="amendment_target_state_idx"),
                ],
            },
        ),
    ]
