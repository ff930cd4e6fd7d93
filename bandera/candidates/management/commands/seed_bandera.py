from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from candidates.models import Candidate

SAMPLE_CANDIDATES = [
    ("Juan", "Pérez", "1ro", "Arrayan"),
    ("María", "González", "1ro", "Arrayan"),
    ("Carlos", "Rodríguez", "2do", "Jacarandá"),
]


class Command(BaseCommand):
    help = "Crea el usuario administrador por defecto y candidatos de ejemplo"

    def add_arguments(self, parser):
        parser.add_argument(
            "--sin-candidatos",
            action="store_true",
            help="Solo crea el usuario administrador.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()
        username = settings.BANDERA_ADMIN_USERNAME

        admin, created = User.objects.get_or_create(
            username=username,
            defaults={"is_staff": True, "is_superuser": True},
        )
        if created:
            admin.set_password(settings.BANDERA_ADMIN_PASSWORD)
            admin.save()
            self.stdout.write(self.style.SUCCESS(f"Administrador '{username}' creado"))
        else:
            self.stdout.write(f"Administrador '{username}' ya existe")

        if options["sin_candidatos"]:
            return

        creados = 0
        for nombre, apellido, grado, curso in SAMPLE_CANDIDATES:
            _, nuevo = Candidate.objects.get_or_create(
                nombre=nombre, apellido=apellido, grado=grado, curso=curso
            )
            creados += int(nuevo)

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed completado: {creados} candidatos nuevos de {len(SAMPLE_CANDIDATES)}"
            )
        )
