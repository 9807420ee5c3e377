import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='JobOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('client_name', models.CharField(db_index=True, help_text='Client name', max_length=200)),
                ('client_address', models.CharField(help_text='Service address', max_length=300)),
                ('contact', models.CharField(blank=True, default='', help_text='Client phone or email', max_length=100)),
                ('type', models.CharField(choices=[('Installation', 'Installation'), ('Repair', 'Repair'), ('Maintenance', 'Maintenance')], db_index=True, max_length=20)),
                ('status', models.CharField(choices=[('Pending', 'Pending'), ('Ongoing', 'Ongoing'), ('Completed', 'Completed')], db_index=True, default='Pending', help_text='Current job status', max_length=20)),
                ('remarks', models.TextField(blank=True, default='', help_text='Free-text notes from admin or technician')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('date_completed', models.DateTimeField(blank=True, help_text='Set on entering Completed, cleared on leaving it', null=True)),
                ('assigned_to', models.ForeignKey(blank=True, help_text='Technician responsible for the job', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_jobs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Job Order',
                'verbose_name_plural': 'Job Orders',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['assigned_to', 'status'], name='job_assignee_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='job_status_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MaterialUsage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_name', models.CharField(max_length=200)),
                ('unit', models.CharField(max_length=30)),
                ('quantity', models.PositiveIntegerField(help_text='Units consumed (or returned, for reversals)', validators=[django.core.validators.MinValueValidator(1)])),
                ('is_reversal', models.BooleanField(default=False, help_text='True when this row returns previously consumed units')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('item', models.ForeignKey(blank=True, help_text='Consumed inventory item', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='usages', to='inventory.inventoryitem')),
                ('job', models.ForeignKey(help_text='Job that used the material', on_delete=django.db.models.deletion.CASCADE, related_name='materials', to='jobs.joborder')),
            ],
            options={
                'verbose_name': 'Material Usage',
                'verbose_name_plural': 'Material Usages',
                'ordering': ['id'],
            },
        ),
    ]
