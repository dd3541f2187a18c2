from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0002_add_replay_unresolved_schedule"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="revenueentry",
            constraint=models.CheckConstraint(
                condition=models.Q(("currency__regex", "^[A-Z]{3}$")),
                name="revenue_entry_currency_iso_upper",
            ),
        ),
    ]
