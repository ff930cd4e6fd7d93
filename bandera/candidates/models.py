from uuid import uuid4

from django.db import models

from .choices import Curso, Grado


class Candidate(models.Model):
    """
    Candidate model - a student nominated for the empathy flag in a class section.
    """

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    nombre = models.CharField(max_length=100)
    apellido = models.CharField(max_length=100)
    grado = models.CharField(max_length=3, choices=Grado.choices)
    curso = models.CharField(max_length=20, choices=Curso.choices)
    # Inactive candidates are kept for history but cannot receive votes.
    active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["grado", "curso", "apellido", "nombre"]
        constraints = [
            models.UniqueConstraint(
                fields=["nombre", "apellido", "grado", "curso"],
                name="uniq_candidate_name_section",
            )
        ]

    def __str__(self):
        return f"{self.nombre} {self.apellido} ({self.grado} - {self.curso})"

    def summary(self):
        """Denormalized data shown next to a vote."""
        return {
            "id": str(self.id),
            "nombre": self.nombre,
            "apellido": self.apellido,
            "grado": self.grado,
            "curso": self.curso,
        }
