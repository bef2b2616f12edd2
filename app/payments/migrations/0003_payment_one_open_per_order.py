from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_add_sweep_schedules"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ["created", "pending"])),
                fields=("order",),
                name="payment_one_open_per_order",
            ),
        ),
    ]
