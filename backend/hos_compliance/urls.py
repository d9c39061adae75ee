"""
URL configuration for HOS Compliance API endpoints.

Provides URL routing for compliance snapshots, violations and the rule
set catalog.
"""

from django.urls import path

from .views import ComplianceViolationViewSet, DriverComplianceViewSet, RuleSetViewSet

urlpatterns = [
    # Compliance calculation endpoints
    path(
        "drivers/<str:driver_id>/compliance/",
        DriverComplianceViewSet.as_view({"get": "compliance"}),
        name="hos-compliance",
    ),
    path(
        "drivers/<str:driver_id>/evaluate/",
        DriverComplianceViewSet.as_view({"post": "evaluate"}),
        name="hos-evaluate",
    ),
    # Violation endpoints
    path(
        "violations/",
        ComplianceViolationViewSet.as_view({"get": "list"}),
        name="hos-violations",
    ),
    path(
        "violations/<uuid:pk>/",
        ComplianceViolationViewSet.as_view({"get": "retrieve"}),
        name="hos-violation-detail",
    ),
    path(
        "violations/<uuid:pk>/resolve/",
        ComplianceViolationViewSet.as_view({"post": "resolve"}),
        name="hos-violations-resolve",
    ),
    # Rule set endpoints
    path(
        "rule-sets/",
        RuleSetViewSet.as_view({"get": "list"}),
        name="hos-rule-sets",
    ),
    path(
        "rule-sets/<str:pk>/",
        RuleSetViewSet.as_view({"get": "retrieve"}),
        name="hos-rule-set-detail",
    ),
]

# API Documentation - Available Endpoints:
"""
GET Endpoints:
- /api/hos/drivers/<driver_id>/compliance/?rule_set=&at=&timezone= - Compliance snapshot
- /api/hos/violations/?driver_id=&severity=&kind=&resolved= - List violations
- /api/hos/violations/<uuid:id>/ - Retrieve specific violation
- /api/hos/rule-sets/ - Current version of every rule set
- /api/hos/rule-sets/<key>/ - Every version of one rule set

POST Endpoints:
- /api/hos/drivers/<driver_id>/evaluate/ - Calculate and record violations
- /api/hos/violations/<uuid:id>/resolve/ - Mark violation as resolved
"""
