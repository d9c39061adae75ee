"""
HOS Compliance API Serializers.

Provides validation for compliance calculation requests and violation
management. Snapshots, violations and rule sets are rendered by their own
to_dict() methods.
"""

from rest_framework import serializers

from common.exceptions import UnknownRuleSetError
from common.validators import validate_timezone_name

from .services.rule_set_registry import get_rule_set_registry
from .services.violation_detector import Severity, ViolationKind


class ComplianceRequestSerializer(serializers.Serializer):
    """
    Serializer for compliance calculation parameters.

    Used for the compliance query string and the evaluate request body.
    """

    rule_set = serializers.CharField(
        max_length=50,
        required=False,
        help_text="Rule set key (default: configured rule set)"
    )

    at = serializers.DateTimeField(
        required=False,
        help_text="Instant to evaluate at (default: now)"
    )

    timezone = serializers.CharField(
        max_length=64,
        required=False,
        validators=[validate_timezone_name],
        help_text="Driver's home terminal time zone"
    )

    def validate_rule_set(self, value):
        """Reject unknown rule sets before calculating."""
        try:
            get_rule_set_registry().versions(value)
        except UnknownRuleSetError as e:
            raise serializers.ValidationError(e.message)
        return value


class ViolationQuerySerializer(serializers.Serializer):
    driver_id = serializers.CharField(required=False)
    severity = serializers.ChoiceField(choices=Severity.choices, required=False)
    kind = serializers.ChoiceField(choices=ViolationKind.choices, required=False)
    resolved = serializers.BooleanField(required=False, allow_null=True, default=None)


class ViolationResolveSerializer(serializers.Serializer):
    """Serializer for violation resolution requests."""

    actor_id = serializers.CharField(max_length=64)
    notes = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        help_text="How the violation was resolved"
    )
