import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Ride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('driver_id', models.CharField(db_index=True, max_length=64)),
                ('driver_name', models.CharField(blank=True, default='', max_length=120)),
                ('driver_rating', models.FloatField(default=4.5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(5)])),
                ('from_address', models.CharField(blank=True, default='', max_length=255)),
                ('to_address', models.CharField(blank=True, default='', max_length=255)),
                ('from_city', models.CharField(max_length=120)),
                ('to_city', models.CharField(max_length=120)),
                ('from_province', models.CharField(blank=True, default='', max_length=120)),
                ('to_province', models.CharField(blank=True, default='', max_length=120)),
                ('from_district', models.CharField(blank=True, default='', max_length=120)),
                ('to_district', models.CharField(blank=True, default='', max_length=120)),
                ('from_locality', models.CharField(blank=True, default='', max_length=120)),
                ('to_locality', models.CharField(blank=True, default='', max_length=120)),
                ('from_latitude', models.FloatField(blank=True, null=True)),
                ('from_longitude', models.FloatField(blank=True, null=True)),
                ('to_latitude', models.FloatField(blank=True, null=True)),
                ('to_longitude', models.FloatField(blank=True, null=True)),
                ('route_geometry', models.TextField(blank=True, default='', help_text='Encoded polyline of the planned route')),
                ('departure_date', models.DateField()),
                ('departure_time', models.TimeField()),
                ('price_per_seat', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('available_seats', models.PositiveIntegerField(default=1, help_text='Number of available seats', validators=[django.core.validators.MinValueValidator(0)])),
                ('max_passengers', models.PositiveIntegerField(default=4)),
                ('vehicle_make', models.CharField(blank=True, default='', max_length=60)),
                ('vehicle_model', models.CharField(blank=True, default='', max_length=60)),
                ('vehicle_type', models.CharField(blank=True, default='economy', max_length=30)),
                ('vehicle_plate', models.CharField(blank=True, default='', max_length=20)),
                ('vehicle_color', models.CharField(blank=True, default='', max_length=30)),
                ('status', models.CharField(choices=[('available', 'Available'), ('booked', 'Booked'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], db_index=True, default='available', max_length=20)),
                ('date_added', models.DateTimeField(auto_now_add=True)),
                ('date_last_updated', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Ride',
                'verbose_name_plural': 'Rides',
                'ordering': ['departure_date', 'departure_time'],
            },
        ),
    ]
