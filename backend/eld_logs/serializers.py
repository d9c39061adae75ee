"""
ELD Logs API Serializers.

Provides serialization and validation for the duty status ledger API.
Handles input validation for appends, certification and amendments, and
response formatting for ledger entries. Instants are rendered as ISO-8601
with full sub-second precision.
"""

from rest_framework import serializers

from common.validators import validate_latitude, validate_longitude, validate_timezone_name

from .services.duty_status import AmendmentState, DataSource, DutyStatus


class LocationSerializer(serializers.Serializer):
    latitude = serializers.FloatField(allow_null=True)
    longitude = serializers.FloatField(allow_null=True)
    address = serializers.CharField(allow_blank=True)


class DutyStatusEntrySerializer(serializers.Serializer):
    """
    Serializer for DutyStatusEntry value objects.

    Edited entries always carry the id of the original they replace.
    """

    id = serializers.UUIDField()
    driver_id = serializers.CharField()
    sequence = serializers.IntegerField()
    status = serializers.CharField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField(allow_null=True)
    duration_seconds = serializers.SerializerMethodField()
    is_open = serializers.BooleanField()
    location = LocationSerializer(allow_null=True)
    vehicle_id = serializers.CharField()
    trailer_id = serializers.CharField()
    odometer = serializers.DecimalField(max_digits=12, decimal_places=1, allow_null=True)
    engine_hours = serializers.DecimalField(max_digits=10, decimal_places=1, allow_null=True)
    data_source = serializers.CharField()
    recorded_by = serializers.CharField()
    recorded_at = serializers.DateTimeField(allow_null=True)
    certified_at = serializers.DateTimeField(allow_null=True)
    certified_by = serializers.CharField()
    amends_entry_id = serializers.UUIDField(allow_null=True)
    remarks = serializers.CharField()

    def get_duration_seconds(self, obj):
        """Closed entries only; an open entry's duration keeps growing."""
        if obj.is_open:
            return None
        return obj.duration().total_seconds()


class DutyStatusAppendSerializer(serializers.Serializer):
    """
    Serializer for duty status change requests.

    Location, equipment and remarks become the entry metadata.
    """

    status = serializers.ChoiceField(
        choices=DutyStatus.choices,
        help_text="New duty status"
    )

    at = serializers.DateTimeField(
        help_text="Instant of the duty status change"
    )

    actor_id = serializers.CharField(
        max_length=64,
        required=False,
        help_text="Who records the change (defaults to the driver)"
    )

    expected_sequence = serializers.IntegerField(
        min_value=0,
        required=False,
        help_text="Ledger head sequence the client last saw"
    )

    latitude = serializers.FloatField(
        required=False,
        validators=[validate_latitude],
        help_text="Latitude where the status changed"
    )

    longitude = serializers.FloatField(
        required=False,
        validators=[validate_longitude],
        help_text="Longitude where the status changed"
    )

    address = serializers.CharField(max_length=200, required=False, allow_blank=True)
    vehicle_id = serializers.CharField(max_length=50, required=False, allow_blank=True)
    trailer_id = serializers.CharField(max_length=50, required=False, allow_blank=True)

    odometer = serializers.DecimalField(
        max_digits=12, decimal_places=1, min_value=0, required=False
    )

    engine_hours = serializers.DecimalField(
        max_digits=10, decimal_places=1, min_value=0, required=False
    )

    data_source = serializers.ChoiceField(
        choices=[
            (DataSource.AUTOMATIC.value, DataSource.AUTOMATIC.label),
            (DataSource.MANUAL.value, DataSource.MANUAL.label),
        ],
        required=False,
        help_text="Edited entries are only created by approved amendments"
    )

    remarks = serializers.CharField(max_length=200, required=False, allow_blank=True)

    METADATA_FIELDS = (
        'latitude', 'longitude', 'address', 'vehicle_id', 'trailer_id',
        'odometer', 'engine_hours', 'data_source', 'remarks',
    )

    def metadata(self):
        """Metadata dict for DutyStatusLedgerService.append."""
        return {
            key: self.validated_data[key]
            for key in self.METADATA_FIELDS
            if key in self.validated_data
        }


class EntryRangeQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('start'), attrs.get('end')
        if start and end and start > end:
            raise serializers.ValidationError("start must not be after end")
        return attrs


class CertificationRequestSerializer(serializers.Serializer):
    actor_id = serializers.CharField(max_length=64, required=False)


class CertifyDayRequestSerializer(serializers.Serializer):
    """Serializer for end-of-day certification requests."""

    day = serializers.DateField(help_text="Local calendar day to certify")
    actor_id = serializers.CharField(max_length=64, required=False)
    timezone = serializers.CharField(
        max_length=64,
        required=False,
        validators=[validate_timezone_name],
        help_text="Driver's home terminal time zone (e.g. 'America/Chicago')"
    )


class AmendmentSerializer(serializers.Serializer):
    """Serializer for AmendmentRequest value objects."""

    id = serializers.UUIDField()
    driver_id = serializers.CharField()
    target_entry_id = serializers.UUIDField()
    requested_by = serializers.CharField()
    reason = serializers.CharField()
    proposed_status = serializers.CharField(allow_null=True)
    proposed_start = serializers.DateTimeField(allow_null=True)
    proposed_end = serializers.DateTimeField(allow_null=True)
    state = serializers.CharField()
    requested_at = serializers.DateTimeField(allow_null=True)
    decided_by = serializers.CharField()
    decided_at = serializers.DateTimeField(allow_null=True)
    decision_note = serializers.CharField()
    resulting_entry_id = serializers.UUIDField(allow_null=True)


class AmendmentSubmitSerializer(serializers.Serializer):
    """
    Serializer for amendment submissions.

    At least one of proposed_status, proposed_start and proposed_end is
    required; the others keep the target entry's values.
    """

    target_entry_id = serializers.UUIDField()
    requested_by = serializers.CharField(max_length=64)
    reason = serializers.CharField(help_text="Why the entry needs correcting")
    proposed_status = serializers.ChoiceField(choices=DutyStatus.choices, required=False)
    proposed_start = serializers.DateTimeField(required=False)
    proposed_end = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if not any(
            key in attrs for key in ('proposed_status', 'proposed_start', 'proposed_end')
        ):
            raise serializers.ValidationError(
                "Propose at least one of status, start or end"
            )
        return attrs


class AmendmentDecisionSerializer(serializers.Serializer):
    actor_id = serializers.CharField(max_length=64)
    approve = serializers.BooleanField()
    note = serializers.CharField(required=False, allow_blank=True, default="")


class AmendmentQuerySerializer(serializers.Serializer):
    driver_id = serializers.CharField(required=False)
    state = serializers.ChoiceField(choices=AmendmentState.choices, required=False)
