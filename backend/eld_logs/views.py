"""
ELD Logs API Views.

Provides REST API endpoints for the duty status ledger: recording status
changes, reading and exporting a driver's log, certification, and the
amendment review workflow. Business logic stays in the service layer;
engine errors are rendered by common.exceptions.hos_exception_handler.
"""

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .serializers import (
    AmendmentDecisionSerializer,
    AmendmentQuerySerializer,
    AmendmentSerializer,
    AmendmentSubmitSerializer,
    CertificationRequestSerializer,
    CertifyDayRequestSerializer,
    DutyStatusAppendSerializer,
    DutyStatusEntrySerializer,
    EntryRangeQuerySerializer,
)
from .services import AmendmentWorkflowService, DutyStatusLedgerService

logger = logging.getLogger(__name__)


class DriverDutyStatusViewSet(viewsets.ViewSet):
    """
    ViewSet for a driver's duty status ledger.

    Provides status change recording, log retrieval, export and
    end-of-day certification.
    """

    permission_classes = [AllowAny]

    def list(self, request, driver_id=None):
        """
        List a driver's entries, optionally limited to [start, end].

        Query params:
        - start, end: ISO-8601 instants
        """
        query = EntryRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        ledger = DutyStatusLedgerService()
        entries = list(
            ledger.list_entries(
                driver_id,
                start=query.validated_data.get("start"),
                end=query.validated_data.get("end"),
            )
        )

        return Response(
            {
                "driver_id": driver_id,
                "count": len(entries),
                "entries": DutyStatusEntrySerializer(entries, many=True).data,
            }
        )

    def create(self, request, driver_id=None):
        """Record a duty status change."""
        serializer = DutyStatusAppendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        entry = DutyStatusLedgerService().append(
            driver_id,
            data["status"],
            data["at"],
            metadata=serializer.metadata(),
            actor_id=data.get("actor_id"),
            expected_sequence=data.get("expected_sequence"),
        )

        return Response(
            {
                "status": "success",
                "message": f"Duty status changed to {entry.status.label}",
                "entry": DutyStatusEntrySerializer(entry).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"])
    def current(self, request, driver_id=None):
        """Return the driver's open entry, or null for an empty ledger."""
        entry = DutyStatusLedgerService().current_entry(driver_id)
        return Response(
            {
                "driver_id": driver_id,
                "entry": DutyStatusEntrySerializer(entry).data if entry else None,
            }
        )

    @action(detail=False, methods=["get"])
    def export(self, request, driver_id=None):
        """Export the driver's ledger, superseded originals included."""
        query = EntryRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        export = DutyStatusLedgerService().export_entries(
            driver_id,
            start=query.validated_data.get("start"),
            end=query.validated_data.get("end"),
        )
        return Response(export)

    @action(detail=False, methods=["post"], url_path="certify-day")
    def certify_day(self, request, driver_id=None):
        """Certify every closed entry of one local calendar day."""
        serializer = CertifyDayRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        certified = DutyStatusLedgerService().certify_day(
            driver_id,
            data["day"],
            actor_id=data.get("actor_id"),
            tz=data.get("timezone"),
        )

        return Response(
            {
                "status": "success",
                "message": f"Certified {len(certified)} entries for {data['day'].isoformat()}",
                "entries": DutyStatusEntrySerializer(certified, many=True).data,
            }
        )


class DutyStatusEntryViewSet(viewsets.ViewSet):
    """ViewSet for single ledger entries."""

    permission_classes = [AllowAny]

    def retrieve(self, request, pk=None):
        entry = DutyStatusLedgerService().get_entry(pk)
        return Response(DutyStatusEntrySerializer(entry).data)

    @action(detail=True, methods=["post"])
    def certify(self, request, pk=None):
        """Certify a closed entry."""
        serializer = CertificationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        entry = DutyStatusLedgerService().certify(
            pk, actor_id=serializer.validated_data.get("actor_id")
        )

        logger.info(f"Entry {pk} certified via API")
        return Response(
            {
                "status": "success",
                "message": "Entry certified",
                "entry": DutyStatusEntrySerializer(entry).data,
            }
        )


class AmendmentViewSet(viewsets.ViewSet):
    """
    ViewSet for amendment requests.

    Provides submission, listing and the approve/reject decision. A decision
    by the entry's author or the requester is refused.
    """

    permission_classes = [AllowAny]

    def list(self, request):
        """
        List amendments.

        Query params:
        - driver_id: Filter by driver
        - state: Filter by state (pending, approved, rejected)
        """
        query = AmendmentQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        amendments = AmendmentWorkflowService().list_amendments(
            driver_id=query.validated_data.get("driver_id"),
            state=query.validated_data.get("state"),
        )
        return Response(AmendmentSerializer(amendments, many=True).data)

    def create(self, request):
        """Submit an amendment for review."""
        serializer = AmendmentSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        amendment = AmendmentWorkflowService().submit(
            data["target_entry_id"],
            data["requested_by"],
            data["reason"],
            proposed_status=data.get("proposed_status"),
            proposed_start=data.get("proposed_start"),
            proposed_end=data.get("proposed_end"),
        )

        return Response(
            AmendmentSerializer(amendment).data, status=status.HTTP_201_CREATED
        )

    def retrieve(self, request, pk=None):
        amendment = AmendmentWorkflowService().get(pk)
        return Response(AmendmentSerializer(amendment).data)

    @action(detail=True, methods=["post"])
    def decide(self, request, pk=None):
        """Approve or reject a pending amendment."""
        serializer = AmendmentDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        amendment = AmendmentWorkflowService().decide(
            pk, data["actor_id"], data["approve"], note=data["note"]
        )

        return Response(
            {
                "status": "success",
                "message": f"Amendment {amendment.state.label.lower()}",
                "amendment": AmendmentSerializer(amendment).data,
            }
        )
