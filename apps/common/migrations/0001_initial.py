from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="NumberSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=64, unique=True)),
                ("last_value", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="GlobalSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_edit_password", models.CharField(blank=True, default="", max_length=128)),
                (
                    "order_edit_lock_mode",
                    models.CharField(choices=[("always", "Always"), ("once", "Once")], default="always", max_length=10),
                ),
                ("order_edit_locked", models.BooleanField(default=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "global settings",
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("id", 1)), name="global_settings_singleton"),
                ],
            },
        ),
    ]
