# Generated migration for surveillance app - surveillance_plan

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('clinical', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SurveillancePlan',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('hepatic', 'Hepatic'), ('renal', 'Renal'), ('mixed', 'Mixed'), ('other', 'Other')], max_length=20)),
                ('parameters', models.JSONField(default=list)),
                ('frequency_months', models.PositiveSmallIntegerField(default=3)),
                ('start_date', models.DateField()),
                ('next_due_date', models.DateField()),
                ('last_analysis_date', models.DateField(blank=True, null=True)),
                ('last_results', models.JSONField(blank=True, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('pending', 'Pending'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='active', max_length=20)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('normal', 'Normal'), ('high', 'High'), ('urgent', 'Urgent')], default='normal', max_length=20)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('lab', models.CharField(blank=True, max_length=150, null=True)),
                ('lab_contact', models.CharField(blank=True, max_length=200, null=True)),
                ('row_version', models.IntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='surveillance_plans', to='clinical.patient')),
                ('medication', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='surveillance_plans', to='clinical.medication')),
                ('created_by_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_surveillance_plans', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Surveillance Plan',
                'verbose_name_plural': 'Surveillance Plans',
                'db_table': 'surveillance_plan',
                'indexes': [
                    models.Index(fields=['patient'], name='idx_surv_patient'),
                    models.Index(fields=['medication'], name='idx_surv_medication'),
                    models.Index(fields=['next_due_date'], name='idx_surv_next_due'),
                    models.Index(fields=['status'], name='idx_surv_status'),
                    models.Index(fields=['kind'], name='idx_surv_kind'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(frequency_months__gte=1), name='chk_surv_frequency_positive'),
                ],
            },
        ),
    ]
