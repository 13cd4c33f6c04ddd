from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="order",
            name="dropoff_deadline",
            field=models.DateTimeField(
                blank=True,
                help_text="Seller must drop the items off by this time (DELIVERY_PENDING)",
                null=True,
            ),
        ),
        migrations.AddField(
            model_name="order",
            name="pickup_deadline",
            field=models.DateTimeField(
                blank=True,
                help_text="Buyer must collect the items by this time (DELIVERY_COMPLETE)",
                null=True,
            ),
        ),
        migrations.AddField(
            model_name="order",
            name="auto_cancel_reason",
            field=models.CharField(
                blank=True,
                help_text="Set when the order was cancelled for a missed deadline",
                max_length=255,
            ),
        ),
    ]
