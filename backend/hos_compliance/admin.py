"""
Admin configuration for the HOS compliance app.
"""
from django.contrib import admin

from .models import ComplianceViolation


@admin.register(ComplianceViolation)
class ComplianceViolationAdmin(admin.ModelAdmin):
    list_display = [
        'driver_id', 'violation_type', 'severity', 'detected_at',
        'is_resolved', 'resolved_by'
    ]
    list_filter = ['violation_type', 'severity', 'is_resolved']
    search_fields = ['driver_id', 'description']
    readonly_fields = [
        'id', 'driver_id', 'violation_type', 'severity', 'triggering_entry_id',
        'rule_set_key', 'description', 'used_seconds', 'limit_seconds', 'detected_at'
    ]
