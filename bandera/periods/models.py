from uuid import uuid4

from django.core.validators import RegexValidator
from django.db import models
from django.db.models import F, Q

from candidates.choices import ANO_REGEX, Mes


class VotingPeriod(models.Model):
    """
    A month in which class sections may cast their vote.

    At most one period is active at a time; the partial unique constraint on
    `active` makes the database reject a second active row.
    """

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    mes = models.CharField(max_length=12, choices=Mes.choices)
    ano = models.CharField(max_length=4, validators=[RegexValidator(ANO_REGEX)])
    active = models.BooleanField(default=False)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-ano", "-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["mes", "ano"], name="uniq_period_mes_ano"),
            models.UniqueConstraint(
                fields=["active"],
                condition=Q(active=True),
                name="single_active_period",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gt=F("start_date")),
                name="period_end_after_start",
            ),
        ]

    def __str__(self):
        return f"{self.mes} {self.ano}"

    def is_open(self, now) -> bool:
        """True if `now` falls inside the [start_date, end_date] window, both ends included."""
        return self.start_date <= now <= self.end_date

    def summary(self):
        return {
            "id": str(self.id),
            "mes": self.mes,
            "ano": self.ano,
            "active": self.active,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }
