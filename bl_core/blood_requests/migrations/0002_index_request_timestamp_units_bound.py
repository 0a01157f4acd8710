import django.core.validators
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("blood_requests", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="bloodrequest",
            name="units",
            field=models.PositiveIntegerField(
                validators=[
                    django.core.validators.MinValueValidator(1),
                    django.core.validators.MaxValueValidator(2147483647),
                ]
            ),
        ),
        migrations.AddField(
            model_name="requestindexentry",
            name="request_timestamp",
            field=models.DateTimeField(default=django.utils.timezone.now),
        ),
        migrations.AddIndex(
            model_name="requestindexentry",
            index=models.Index(fields=["index_key", "-request_timestamp"], name="blood_req_index_order_idx"),
        ),
    ]
