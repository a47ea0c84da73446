import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='QueueEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('driver_id', models.CharField(max_length=64, unique=True)),
                ('driver_name', models.CharField(blank=True, max_length=150)),
                ('toda_number', models.CharField(blank=True, max_length=32)),
                ('source', models.CharField(choices=[('hardware', 'RFID Terminal'), ('mobile', 'Mobile App')], default='mobile', max_length=10)),
                ('enqueued_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'db_table': 'driver_queue',
                'ordering': ['enqueued_at', 'id'],
            },
        ),
    ]
