import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='InventoryItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Item name, unique across inventory', max_length=200, unique=True)),
                ('category', models.CharField(db_index=True, help_text='Category used for filtering (e.g. Refrigerant, Piping)', max_length=100)),
                ('unit', models.CharField(help_text='Unit of measure (pcs, kg, m, ...)', max_length=30)),
                ('min_threshold', models.PositiveIntegerField(default=10, help_text='Total quantity at or below which the item is low on stock')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Inventory Item',
                'verbose_name_plural': 'Inventory Items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Batch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Batch label, e.g. "Batch #001"', max_length=100)),
                ('quantity', models.PositiveIntegerField(default=0, help_text='Units remaining in this batch', validators=[django.core.validators.MinValueValidator(0)])),
                ('last_updated', models.DateTimeField(db_index=True, default=django.utils.timezone.now, help_text='Last admin edit; consumption order is oldest first')),
                ('item', models.ForeignKey(help_text='Owning inventory item', on_delete=django.db.models.deletion.CASCADE, related_name='batches', to='inventory.inventoryitem')),
            ],
            options={
                'verbose_name': 'Batch',
                'verbose_name_plural': 'Batches',
                'ordering': ['last_updated', 'id'],
            },
        ),
    ]
