"""
URL configuration for fleet_api project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/4.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse

def api_root(request):
    """API root endpoint with available endpoints."""
    return JsonResponse({
        'message': 'Fleet HOS Compliance API',
        'version': '1.0',
        'endpoints': {
            'hos_compliance': '/api/hos/',
            'eld_logs': '/api/eld/',
            'admin': '/admin/',
        },
        'documentation': {
            'eld_logs': {
                'description': 'Append-only duty status ledger, certification and amendments',
                'endpoints': {
                    'append': 'POST /api/eld/drivers/<driver_id>/duty-status/ - Record a duty status change',
                    'list': 'GET /api/eld/drivers/<driver_id>/duty-status/?start=&end= - List entries',
                    'current': 'GET /api/eld/drivers/<driver_id>/duty-status/current/ - Current open entry',
                    'export': 'GET /api/eld/drivers/<driver_id>/export/ - ELD data export',
                    'certify_day': 'POST /api/eld/drivers/<driver_id>/certify-day/ - Certify a day',
                    'certify': 'POST /api/eld/entries/<uuid>/certify/ - Certify an entry',
                    'amendments': 'GET|POST /api/eld/amendments/ - List or submit amendments',
                    'decide': 'POST /api/eld/amendments/<uuid>/decide/ - Approve or reject',
                }
            },
            'hos_compliance': {
                'description': 'Hours of Service compliance calculation and violations',
                'endpoints': {
                    'compliance': 'GET /api/hos/drivers/<driver_id>/compliance/?rule_set=&at= - Compliance snapshot',
                    'evaluate': 'POST /api/hos/drivers/<driver_id>/evaluate/ - Evaluate and record violations',
                    'violations': 'GET /api/hos/violations/?driver_id=&severity=&kind=&resolved= - List violations',
                    'resolve': 'POST /api/hos/violations/<uuid>/resolve/ - Resolve a violation',
                    'rule_sets': 'GET /api/hos/rule-sets/ - List rule sets',
                }
            }
        }
    })

urlpatterns = [
    # Admin interface
    path("admin/", admin.site.urls),

    # API root
    path("api/", api_root, name='api-root'),

    # HOS Compliance API
    path("api/hos/", include("hos_compliance.urls")),

    # ELD Logs API
    path("api/eld/", include("eld_logs.urls")),
]
