# Clinical alerting: observations and critical alerts

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


VERDICT_CHOICES = [
    ('normal', 'Normal'),
    ('low', 'Low'),
    ('high', 'High'),
    ('critical_low', 'Critical Low'),
    ('critical_high', 'Critical High'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # VitalObservation
        migrations.CreateModel(
            name='VitalObservation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('patient_id', models.UUIDField(db_index=True)),
                ('parameter_name', models.SlugField(max_length=64)),
                ('value', models.DecimalField(decimal_places=4, max_digits=12)),
                ('unit', models.CharField(blank=True, default='', max_length=20)),
                ('recorded_at', models.DateTimeField()),
                ('verdict', models.CharField(blank=True, choices=VERDICT_CHOICES, max_length=20, null=True)),
                ('bucket', models.CharField(blank=True, default='', max_length=20)),
                ('requires_review', models.BooleanField(default=False)),
                ('review_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_vitals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Vital Observation',
                'verbose_name_plural': 'Vital Observations',
                'db_table': 'vital_observation',
                'ordering': ['-recorded_at'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['patient_id', 'recorded_at'], name='idx_vital_patient_recorded'),
                    models.Index(fields=['requires_review'], name='idx_vital_review'),
                ],
            },
        ),

        # LabResult
        migrations.CreateModel(
            name='LabResult',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('patient_id', models.UUIDField(db_index=True)),
                ('parameter_name', models.SlugField(max_length=64)),
                ('value', models.DecimalField(decimal_places=4, max_digits=12)),
                ('unit', models.CharField(blank=True, default='', max_length=20)),
                ('recorded_at', models.DateTimeField()),
                ('verdict', models.CharField(blank=True, choices=VERDICT_CHOICES, max_length=20, null=True)),
                ('bucket', models.CharField(blank=True, default='', max_length=20)),
                ('requires_review', models.BooleanField(default=False)),
                ('review_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_lab_results', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Lab Result',
                'verbose_name_plural': 'Lab Results',
                'db_table': 'lab_result',
                'ordering': ['-recorded_at'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['patient_id', 'recorded_at'], name='idx_lab_patient_recorded'),
                    models.Index(fields=['requires_review'], name='idx_lab_review'),
                ],
            },
        ),

        # CriticalAlert
        migrations.CreateModel(
            name='CriticalAlert',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('alert_type', models.CharField(choices=[('vital_sign', 'Vital Sign'), ('lab_result', 'Lab Result')], max_length=20)),
                ('severity', models.CharField(choices=[('warning', 'Warning'), ('critical', 'Critical'), ('emergency', 'Emergency')], max_length=20)),
                ('patient_id', models.UUIDField(db_index=True)),
                ('source_type', models.CharField(choices=[('vital_observation', 'Vital Observation'), ('lab_result', 'Lab Result')], max_length=30)),
                ('source_observation_id', models.UUIDField()),
                ('parameter_name', models.SlugField(max_length=64)),
                ('parameter_value', models.DecimalField(decimal_places=4, max_digits=12)),
                ('threshold_value', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('verdict', models.CharField(choices=VERDICT_CHOICES, max_length=20)),
                ('message', models.TextField()),
                ('details', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('open', 'Open'), ('acknowledged', 'Acknowledged'), ('resolved', 'Resolved')], default='open', max_length=20)),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('resolution_notes', models.TextField(blank=True, default='')),
                ('notification_status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('notification_attempted_at', models.DateTimeField(blank=True, null=True)),
                ('notification_error', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='acknowledged_alerts', to=settings.AUTH_USER_MODEL)),
                ('resolved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='resolved_alerts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Critical Alert',
                'verbose_name_plural': 'Critical Alerts',
                'db_table': 'critical_alert',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'severity'], name='idx_alert_status_severity'),
                    models.Index(fields=['patient_id', 'created_at'], name='idx_alert_patient_created'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('source_type', 'source_observation_id'), name='uniq_alert_source_observation'),
                ],
            },
        ),
    ]
