"""
Admin configuration for the ELD logs app.

Ledger rows are append-only, so the admin shows them read-only.
"""
from django.contrib import admin

from .models import AmendmentRecord, DriverLedgerHead, DutyStatusRecord


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DutyStatusRecord)
class DutyStatusRecordAdmin(ReadOnlyAdmin):
    list_display = [
        'driver_id', 'sequence', 'status', 'start_time', 'end_time',
        'data_source', 'certified_at'
    ]
    list_filter = ['status', 'data_source']
    search_fields = ['driver_id', 'vehicle_id']
    ordering = ['driver_id', 'sequence']


@admin.register(DriverLedgerHead)
class DriverLedgerHeadAdmin(ReadOnlyAdmin):
    list_display = ['driver_id', 'last_sequence', 'open_entry', 'updated_at']
    search_fields = ['driver_id']


@admin.register(AmendmentRecord)
class AmendmentRecordAdmin(ReadOnlyAdmin):
    list_display = [
        'id', 'driver_id', 'target_entry', 'state', 'requested_by',
        'decided_by', 'requested_at'
    ]
    list_filter = ['state']
    search_fields = ['driver_id', 'requested_by', 'decided_by']
