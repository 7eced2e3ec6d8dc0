from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("pos_store", "0001_initial"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="shift",
            constraint=models.UniqueConstraint(
                condition=models.Q(status="open"),
                fields=["cashier_id"],
                name="uq_shift_cashier_open",
            ),
        ),
    ]
