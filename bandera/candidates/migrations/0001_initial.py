import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Candidate",
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
                ("nombre", models.CharField(max_length=100)),
                ("apellido", models.CharField(max_length=100)),
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
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["grado", "curso", "apellido", "nombre"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("nombre", "apellido", "grado", "curso"),
                        name="uniq_candidate_name_section",
                    )
                ],
            },
        ),
    ]
