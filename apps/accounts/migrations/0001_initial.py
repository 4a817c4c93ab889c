from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("store_name", models.CharField(blank=True, max_length=255, verbose_name="Do'kon nomi")),
                ("is_blocked", models.BooleanField(default=False, verbose_name="Bloklangan")),
                (
                    "subscription_date",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="Obuna sanasi"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Foydalanuvchi",
                    ),
                ),
            ],
            options={
                "verbose_name": "Do'kon hisobi",
                "verbose_name_plural": "Do'kon hisoblari",
                "ordering": ["-created_at"],
            },
        ),
    ]
