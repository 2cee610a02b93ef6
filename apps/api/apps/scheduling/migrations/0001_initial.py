# Scheduling: appointments and per-doctor daily queues

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # Appointment
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('patient_id', models.UUIDField(db_index=True)),
                ('doctor_id', models.UUIDField(db_index=True)),
                ('appointment_date', models.DateField()),
                ('appointment_time', models.TimeField()),
                ('duration_minutes', models.PositiveSmallIntegerField(default=30, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(480)])),
                ('appointment_type', models.CharField(choices=[('consultation', 'Consultation'), ('follow_up', 'Follow-up'), ('procedure', 'Procedure'), ('emergency', 'Emergency'), ('telemedicine', 'Telemedicine'), ('vaccination', 'Vaccination'), ('checkup', 'Checkup')], default='consultation', max_length=20)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('normal', 'Normal'), ('high', 'High'), ('urgent', 'Urgent'), ('emergency', 'Emergency'), ('critical', 'Critical')], default='normal', max_length=20)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('confirmed', 'Confirmed'), ('checked_in', 'Checked In'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('no_show', 'No Show'), ('rescheduled', 'Rescheduled')], default='scheduled', max_length=20)),
                ('reason_for_visit', models.TextField(blank=True, default='')),
                ('checked_in_at', models.DateTimeField(blank=True, null=True)),
                ('consultation_started_at', models.DateTimeField(blank=True, null=True)),
                ('consultation_ended_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('rescheduled_from', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='scheduling.appointment')),
                ('rescheduled_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='scheduling.appointment')),
                ('checked_in_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='checked_in_appointments', to=settings.AUTH_USER_MODEL)),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cancelled_appointments', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_appointments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Appointment',
                'verbose_name_plural': 'Appointments',
                'db_table': 'appointment',
                'ordering': ['appointment_date', 'appointment_time'],
                'indexes': [
                    models.Index(fields=['doctor_id', 'appointment_date'], name='idx_appointment_doctor_date'),
                    models.Index(fields=['patient_id'], name='idx_appointment_patient'),
                    models.Index(fields=['status'], name='idx_appointment_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status__in', ['cancelled', 'rescheduled']), _negated=True),
                        fields=('doctor_id', 'appointment_date', 'appointment_time'),
                        name='uniq_appointment_doctor_slot',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('duration_minutes__gte', 1), ('duration_minutes__lte', 480)),
                        name='appointment_duration_range',
                    ),
                ],
            },
        ),

        # QueueEntry
        migrations.CreateModel(
            name='QueueEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('doctor_id', models.UUIDField()),
                ('queue_date', models.DateField()),
                ('queue_number', models.PositiveIntegerField()),
                ('sort_key', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('waiting', 'Waiting'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('skipped', 'Skipped'), ('cancelled', 'Cancelled')], default='waiting', max_length=20)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('normal', 'Normal'), ('high', 'High'), ('urgent', 'Urgent'), ('emergency', 'Emergency'), ('critical', 'Critical')], default='normal', max_length=20)),
                ('called_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('appointment', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='queue_entry', to='scheduling.appointment')),
            ],
            options={
                'verbose_name': 'Queue Entry',
                'verbose_name_plural': 'Queue Entries',
                'db_table': 'queue_entry',
                'ordering': ['queue_date', 'sort_key'],
                'indexes': [
                    models.Index(fields=['doctor_id', 'queue_date', 'status'], name='idx_queue_doctor_date_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('doctor_id', 'queue_date', 'queue_number'),
                        name='uniq_queue_doctor_date_number',
                    ),
                ],
            },
        ),
    ]
