from django.contrib import admin
from .models import Patient, Medication


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'birth_date', 'phone', 'is_deleted', 'created_at']
    list_filter = ['sex', 'is_deleted']
    search_fields = ['first_name', 'last_name', 'email', 'phone']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['created_by_user']


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ['brand_name', 'inn', 'therapeutic_class', 'hepatic_monitoring', 'renal_monitoring', 'status']
    list_filter = ['hepatic_monitoring', 'renal_monitoring', 'status']
    search_fields = ['brand_name', 'inn', 'therapeutic_class']
    readonly_fields = ['id', 'created_at', 'updated_at']
