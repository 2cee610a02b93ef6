# Reference data: schedules, leave, clinical parameters, demographics projection

import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        # DoctorSchedule
        migrations.CreateModel(
            name='DoctorSchedule',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('doctor_id', models.UUIDField(db_index=True)),
                ('day_of_week', models.PositiveSmallIntegerField(choices=[(0, 'Sunday'), (1, 'Monday'), (2, 'Tuesday'), (3, 'Wednesday'), (4, 'Thursday'), (5, 'Friday'), (6, 'Saturday')])),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('break_start', models.TimeField(blank=True, null=True)),
                ('break_end', models.TimeField(blank=True, null=True)),
                ('effective_from', models.DateField(default=django.utils.timezone.localdate)),
                ('effective_until', models.DateField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Doctor Schedule',
                'verbose_name_plural': 'Doctor Schedules',
                'db_table': 'doctor_schedule',
                'indexes': [
                    models.Index(fields=['doctor_id', 'day_of_week'], name='idx_schedule_doctor_day'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('day_of_week__gte', 0), ('day_of_week__lte', 6)),
                        name='schedule_day_of_week_range',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('end_time__gt', models.F('start_time'))),
                        name='schedule_end_after_start',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('break_start__isnull', True), ('break_end__isnull', True)),
                            models.Q(
                                ('break_start__isnull', False),
                                ('break_end__isnull', False),
                                ('break_end__gt', models.F('break_start')),
                                ('break_start__gte', models.F('start_time')),
                                ('break_end__lte', models.F('end_time')),
                            ),
                            _connector='OR',
                        ),
                        name='schedule_break_within_window',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ('effective_until__isnull', True),
                            ('effective_until__gte', models.F('effective_from')),
                            _connector='OR',
                        ),
                        name='schedule_effective_range',
                    ),
                ],
            },
        ),

        # DoctorLeave
        migrations.CreateModel(
            name='DoctorLeave',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('doctor_id', models.UUIDField(db_index=True)),
                ('leave_type', models.CharField(choices=[('sick', 'Sick'), ('casual', 'Casual'), ('emergency', 'Emergency'), ('vacation', 'Vacation'), ('conference', 'Conference'), ('maternity', 'Maternity'), ('paternity', 'Paternity')], max_length=20)),
                ('from_date', models.DateField()),
                ('to_date', models.DateField()),
                ('reason', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Doctor Leave',
                'verbose_name_plural': 'Doctor Leaves',
                'db_table': 'doctor_leave',
                'indexes': [
                    models.Index(fields=['doctor_id', 'from_date', 'to_date'], name='idx_leave_doctor_dates'),
                    models.Index(fields=['status'], name='idx_leave_status'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('to_date__gte', models.F('from_date'))),
                        name='leave_dates_ordered',
                    ),
                ],
            },
        ),

        # ClinicalParameter
        migrations.CreateModel(
            name='ClinicalParameter',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.SlugField(max_length=64, unique=True)),
                ('display_name', models.CharField(max_length=128)),
                ('kind', models.CharField(choices=[('vital', 'Vital Sign'), ('lab', 'Lab Result')], max_length=10)),
                ('default_unit', models.CharField(blank=True, default='', max_length=20)),
                ('reference_ranges', models.JSONField(blank=True, default=dict)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Clinical Parameter',
                'verbose_name_plural': 'Clinical Parameters',
                'db_table': 'clinical_parameter',
                'ordering': ['name'],
            },
        ),

        # PatientDemographics
        migrations.CreateModel(
            name='PatientDemographics',
            fields=[
                ('patient_id', models.UUIDField(primary_key=True, serialize=False)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, choices=[('male', 'Male'), ('female', 'Female'), ('other', 'Other'), ('prefer_not_to_say', 'Prefer not to say')], default='', max_length=20)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Patient Demographics',
                'verbose_name_plural': 'Patient Demographics',
                'db_table': 'patient_demographics',
            },
        ),
    ]
