from uuid import uuid4

from django.core.validators import RegexValidator
from django.db import models

from candidates.choices import ANO_REGEX, Curso, Grado, Mes


class Vote(models.Model):
    """
    The collective vote of one class section (grado, curso) for one month.

    Votes are written once and never updated.
    """

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    candidate = models.ForeignKey(
        "candidates.Candidate", on_delete=models.PROTECT, related_name="votes"
    )
    grado = models.CharField(max_length=3, choices=Grado.choices)
    curso = models.CharField(max_length=20, choices=Curso.choices)
    mes = models.CharField(max_length=12, choices=Mes.choices)
    ano = models.CharField(max_length=4, validators=[RegexValidator(ANO_REGEX)])
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-timestamp"]
        constraints = [
            # one vote per class section per month; the authoritative duplicate guard
            models.UniqueConstraint(
                fields=["grado", "curso", "mes", "ano"],
                name="uniq_vote_section_month",
            )
        ]
        indexes = [models.Index(fields=["mes", "ano"], name="voting_vote_mes_ano_idx")]

    def __str__(self):
        return f"Vote of {self.grado} - {self.curso} ({self.mes} {self.ano}) for {self.candidate}"

    @property
    def period_label(self):
        return f"{self.mes} {self.ano}"
