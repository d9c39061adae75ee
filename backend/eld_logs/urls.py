"""
URL configuration for ELD Logs API endpoints.

Provides URL routing for the duty status ledger, entry certification and
amendment review endpoints.
"""

from django.urls import path

from .views import AmendmentViewSet, DriverDutyStatusViewSet, DutyStatusEntryViewSet

urlpatterns = [
    # Driver ledger endpoints
    path(
        "drivers/<str:driver_id>/duty-status/",
        DriverDutyStatusViewSet.as_view({"get": "list", "post": "create"}),
        name="eld-duty-status",
    ),
    path(
        "drivers/<str:driver_id>/duty-status/current/",
        DriverDutyStatusViewSet.as_view({"get": "current"}),
        name="eld-duty-status-current",
    ),
    path(
        "drivers/<str:driver_id>/export/",
        DriverDutyStatusViewSet.as_view({"get": "export"}),
        name="eld-export",
    ),
    path(
        "drivers/<str:driver_id>/certify-day/",
        DriverDutyStatusViewSet.as_view({"post": "certify_day"}),
        name="eld-certify-day",
    ),
    # Entry endpoints
    path(
        "entries/<uuid:pk>/",
        DutyStatusEntryViewSet.as_view({"get": "retrieve"}),
        name="eld-entry-detail",
    ),
    path(
        "entries/<uuid:pk>/certify/",
        DutyStatusEntryViewSet.as_view({"post": "certify"}),
        name="eld-entry-certify",
    ),
    # Amendment endpoints
    path(
        "amendments/",
        AmendmentViewSet.as_view({"get": "list", "post": "create"}),
        name="eld-amendments",
    ),
    path(
        "amendments/<uuid:pk>/",
        AmendmentViewSet.as_view({"get": "retrieve"}),
        name="eld-amendment-detail",
    ),
    path(
        "amendments/<uuid:pk>/decide/",
        AmendmentViewSet.as_view({"post": "decide"}),
        name="eld-amendment-decide",
    ),
]

# API Documentation - Available Endpoints:
"""
GET Endpoints:
- /api/eld/drivers/<driver_id>/duty-status/?start=&end= - List a driver's entries
- /api/eld/drivers/<driver_id>/duty-status/current/ - Driver's open entry
- /api/eld/drivers/<driver_id>/export/?start=&end= - ELD data export
- /api/eld/entries/<uuid:id>/ - Retrieve specific entry
- /api/eld/amendments/?driver_id=&state= - List amendments
- /api/eld/amendments/<uuid:id>/ - Retrieve specific amendment

POST Endpoints:
- /api/eld/drivers/<driver_id>/duty-status/ - Record a duty status change
- /api/eld/drivers/<driver_id>/certify-day/ - Certify a local calendar day
- /api/eld/entries/<uuid:id>/certify/ - Certify a closed entry
- /api/eld/amendments/ - Submit an amendment
- /api/eld/amendments/<uuid:id>/decide/ - Approve or reject an amendment
"""
