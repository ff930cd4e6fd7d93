import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("candidates", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Vote",
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
                (
                    "grado",
                    models.CharField(
                        choices=[
                            ("1ro", "1ro"),
                            ("2do", "2do"),
                            ("3ro", "3ro"),
                            ("4to", "4to"),
                            ("5to", "5to"),
                            ("6to", "6to"),
                        ],
                        max_length=3,
                    ),
                ),
                (
                    "curso",
                    models.CharField(
                        choices=[
                            ("Arrayan", "Arrayan"),
                            ("Jacarandá", "Jacarandá"),
                            ("Ceibo", "Ceibo"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "mes",
                    models.CharField(
                        choices=[
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
                        ],
                        max_length=12,
                    ),
                ),
                (
                    "ano",
                    models.CharField(
                        max_length=4,
                        validators=[django.core.validators.RegexValidator("^\\d{4}$")],
                    ),
                ),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="candidates.candidate",
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["mes", "ano"], name="voting_vote_mes_ano_idx")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("grado", "curso", "mes", "ano"),
                        name="uniq_vote_section_month",
                    )
                ],
            },
        ),
    ]
