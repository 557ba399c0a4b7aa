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
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255, validators=[django.core.validators.RegexValidator(inverse_match=True, message='Title cannot contain line breaks.', regex='[\\r\\n]')])),
                ('description', models.TextField(blank=True)),
                ('type', models.CharField(choices=[('personal', 'Personal'), ('delegated', 'Delegated'), ('meeting', 'Meeting'), ('week-off', 'Week Off')], db_index=True, default='personal', max_length=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('in_progress', 'In Progress'), ('done', 'Done'), ('under_review', 'Under Review'), ('completed', 'Completed'), ('overdue', 'Overdue')], db_index=True, default='pending', max_length=15)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], default='medium', max_length=10)),
                ('color', models.CharField(blank=True, choices=[('Red', 'Red'), ('Green', 'Green'), ('Blue', 'Blue'), ('Yellow', 'Yellow')], max_length=10)),
                ('company', models.CharField(blank=True, max_length=255)),
                ('due_date', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('start_time', models.CharField(blank=True, help_text='HH:MM, combined with the due date for meetings', max_length=5, validators=[django.core.validators.RegexValidator(message='Time must be in HH:MM (24-hour) format.', regex='^([01]\\d|2[0-3]):[0-5]\\d$')])),
                ('end_time', models.CharField(blank=True, max_length=5, validators=[django.core.validators.RegexValidator(message='Time must be in HH:MM (24-hour) format.', regex='^([01]\\d|2[0-3]):[0-5]\\d$')])),
                ('recurrence', models.CharField(choices=[('none', 'None'), ('daily', 'Daily'), ('weekdays', 'Weekdays'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('yearly', 'Yearly')], default='none', max_length=10)),
                ('recurrence_end_date', models.DateTimeField(blank=True, null=True)),
                ('reminders', models.JSONField(blank=True, default=list, help_text='Requested reminder labels, e.g. ["5m", "15m"] (informational)')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(help_text='Owner of this task; never changes after creation', on_delete=django.db.models.deletion.CASCADE, related_name='created_tasks', to=settings.AUTH_USER_MODEL)),
                ('assigned_to', models.ManyToManyField(blank=True, related_name='assigned_tasks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'task',
                'verbose_name_plural': 'tasks',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'due_date'], name='task_status_due_idx'),
                    models.Index(fields=['created_by', 'status'], name='task_owner_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProgressNote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('note', models.TextField()),
                ('timestamp', models.DateTimeField()),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='progress_notes', to=settings.AUTH_USER_MODEL)),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='progress_notes', to='tasks.task')),
            ],
            options={
                'verbose_name': 'progress note',
                'verbose_name_plural': 'progress notes',
                'ordering': ['timestamp', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='SentReminder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('label', models.CharField(max_length=8)),
                ('sent_at', models.DateTimeField()),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sent_reminders', to='tasks.task')),
            ],
            options={
                'verbose_name': 'sent reminder',
                'verbose_name_plural': 'sent reminders',
                'ordering': ['sent_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('task', 'label'), name='unique_task_reminder_label'),
                ],
            },
        ),
    ]
