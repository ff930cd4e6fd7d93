import uuid

import django.core.validators
from django.db import migrations, models


MESES = [
    ("Enero", "Enero"),
    ("Febrero", "Febrero"),
    ("Marzo", "Marzo"),
    ("Abril", "Abril"),
    ("Mayo", "Mayo"),
    ("Junio", "Junio"),
    ("Julio", "Julio"),
    ("Agosto", "Agosto"),
    ("Septiembre", "Septiembre"),
    ("Octubre", "Octubre"),
    ("Noviembre", "Noviembre"),
    ("Diciembre", "Diciembre"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="VotingPeriod",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("mes", models.CharField(choices=MESES, max_length=12)),
                (
                    "ano",
                    models.CharField(
                        max_length=4,
                        validators=[django.core.validators.RegexValidator("^\\d{4}$")],
                    ),
                ),
                ("active", models.BooleanField(default=False)),
                ("start_date", models.DateTimeField()),
                ("end_date", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-ano", "-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("mes", "ano"), name="uniq_period_mes_ano"
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("active", True)),
                        fields=("active",),
                        name="single_active_period",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("end_date__gt", models.F("start_date"))),
                        name="period_end_after_start",
                    ),
                ],
            },
        ),
    ]
