from django.contrib import admin
from .models import SurveillancePlan


@admin.register(SurveillancePlan)
class SurveillancePlanAdmin(admin.ModelAdmin):
    list_display = ['patient', 'kind', 'frequency_months', 'next_due_date', 'status', 'priority']
    list_filter = ['kind', 'status', 'priority']
    search_fields = ['patient__first_name', 'patient__last_name', 'medication__brand_name', 'lab']
    readonly_fields = [
        'id', 'next_due_date', 'last_analysis_date', 'last_results',
        'row_version', 'created_by_user', 'created_at', 'updated_at',
    ]
    autocomplete_fields = ['patient', 'medication']

    fieldsets = (
        ('Plan', {
            'fields': ('id', 'patient', 'medication', 'kind', 'parameters', 'frequency_months', 'priority')
        }),
        ('Schedule', {
            'fields': ('start_date', 'next_due_date', 'last_analysis_date', 'last_results', 'status', 'cancellation_reason')
        }),
        ('Laboratory', {
            'fields': ('lab', 'lab_contact', 'notes')
        }),
        ('Audit', {
            'fields': ('row_version', 'created_by_user', 'created_at', 'updated_at')
        }),
    )
