"""
HOS Compliance API Views.

Provides REST API endpoints for driver compliance snapshots, violation
recording and resolution, and the rule set catalog. Business logic stays
in the service layer; engine errors are rendered by
common.exceptions.hos_exception_handler.
"""

import logging

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .serializers import (
    ComplianceRequestSerializer,
    ViolationQuerySerializer,
    ViolationResolveSerializer,
)
from .services import HOSCalculatorService, get_rule_set_registry, get_violation_store

logger = logging.getLogger(__name__)


class DriverComplianceViewSet(viewsets.ViewSet):
    """
    ViewSet for driver compliance calculations.

    The compliance endpoint never fails: an error yields a snapshot that
    forbids driving and work.
    """

    permission_classes = [AllowAny]

    @action(detail=False, methods=["get"])
    def compliance(self, request, driver_id=None):
        """
        Calculate a driver's compliance snapshot.

        Query params:
        - rule_set: Rule set key
        - at: ISO-8601 instant to evaluate at
        - timezone: Home terminal time zone
        """
        serializer = ComplianceRequestSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        snapshot = HOSCalculatorService().assess(
            driver_id,
            rule_set_key=data.get("rule_set"),
            now=data.get("at"),
            tz=data.get("timezone"),
        )
        return Response(snapshot.to_dict())

    @action(detail=False, methods=["post"])
    def evaluate(self, request, driver_id=None):
        """Calculate a snapshot and record its violations."""
        serializer = ComplianceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        snapshot, recorded = HOSCalculatorService().evaluate_and_record(
            driver_id,
            rule_set_key=data.get("rule_set"),
            now=data.get("at"),
            tz=data.get("timezone"),
        )

        logger.info(
            f"Compliance evaluated for driver {driver_id}: {len(recorded)} new violations"
        )
        return Response(
            {
                "status": "success",
                "snapshot": snapshot.to_dict(),
                "recorded_violations": [v.to_dict() for v in recorded],
            }
        )


class ComplianceViolationViewSet(viewsets.ViewSet):
    """
    ViewSet for Compliance Violation operations.

    Violations are read-only apart from resolution.
    """

    permission_classes = [AllowAny]

    def list(self, request):
        """
        List violations.

        Query params:
        - driver_id: Filter by driver
        - severity: Filter by severity (warning, critical)
        - kind: Filter by violation kind
        - resolved: Filter by resolution status
        """
        query = ViolationQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        violations = get_violation_store().query(
            driver_id=data.get("driver_id"),
            severity=data.get("severity"),
            kind=data.get("kind"),
            resolved=data.get("resolved"),
        )
        return Response(
            {
                "count": len(violations),
                "violations": [v.to_dict() for v in violations],
            }
        )

    def retrieve(self, request, pk=None):
        violation = get_violation_store().get(pk)
        return Response(violation.to_dict())

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        """Mark violation as resolved."""
        serializer = ViolationResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        violation = get_violation_store().resolve(
            pk, data["actor_id"], notes=data["notes"]
        )

        logger.info(f"Violation {pk} marked as resolved")
        return Response(
            {
                "status": "success",
                "message": "Violation marked as resolved",
                "violation": violation.to_dict(),
            }
        )


class RuleSetViewSet(viewsets.ViewSet):
    """ViewSet for the rule set catalog."""

    permission_classes = [AllowAny]

    def list(self, request):
        registry = get_rule_set_registry()
        return Response(
            {
                "default": registry.default_key,
                "rule_sets": [registry.resolve(key).to_dict() for key in registry.keys()],
            }
        )

    def retrieve(self, request, pk=None):
        """Every version of one rule set, oldest first."""
        versions = get_rule_set_registry().versions(pk)
        return Response(
            {
                "key": pk,
                "versions": [rule_set.to_dict() for rule_set in versions],
            }
        )
