import logging
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, IntegerField, OuterRef, Subquery, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from .models import VotingPeriod

logger = logging.getLogger("periods")


class PeriodServiceError(Exception):
    """Base Exception for the period registry"""

    error_kind = "PeriodError"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DuplicatePeriodError(PeriodServiceError):
    """Raised when a period for the same month and year already exists"""

    error_kind = "DuplicatePeriod"
    status_code = 409

    def __init__(self, existing: VotingPeriod):
        super().__init__(
            f"Ya existe un período de votación para {existing.mes} {existing.ano}",
            {"existing": existing.summary()},
        )


class InvalidDateRangeError(PeriodServiceError):
    """Raised when end_date is not after start_date"""

    error_kind = "InvalidDateRange"
    status_code = 400

    def __init__(self, start_date, end_date):
        super().__init__(
            "La fecha de fin debe ser posterior a la fecha de inicio",
            {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


class PeriodNotFoundError(PeriodServiceError):
    """Raised when a period id is unknown"""

    error_kind = "PeriodNotFound"
    status_code = 404

    def __init__(self, period_id):
        super().__init__(
            f"No existe un período con ID: {period_id}", {"period_id": str(period_id)}
        )


class PeriodRegistry:
    """
    Stores voting periods and keeps at most one of them active.

    Every transition into the active state deactivates the other periods in
    the same database transaction.
    """

    @transaction.atomic
    def create_period(
        self, mes: str, ano: str, active: bool, start_date, end_date
    ) -> VotingPeriod:
        """
        Create a period for (mes, ano).

        Raises:
            InvalidDateRangeError: If end_date <= start_date
            DuplicatePeriodError: If a period for (mes, ano) already exists
        """
        if end_date <= start_date:
            logger.warning(f"Invalid date range for {mes} {ano}: {start_date} >= {end_date}")
            raise InvalidDateRangeError(start_date, end_date)

        existing = VotingPeriod.objects.filter(mes=mes, ano=ano).first()
        if existing is not None:
            logger.warning(f"Period {mes} {ano} already exists | period_id={existing.id}")
            raise DuplicatePeriodError(existing)

        if active:
            self.deactivate_others()

        try:
            with transaction.atomic():
                period = VotingPeriod.objects.create(
                    mes=mes,
                    ano=ano,
                    active=active,
                    start_date=start_date,
                    end_date=end_date,
                )
        except IntegrityError:
            # a concurrent request inserted the same (mes, ano) first
            existing = VotingPeriod.objects.filter(mes=mes, ano=ano).first()
            if existing is None:
                raise
            logger.warning(f"Period {mes} {ano} created concurrently | period_id={existing.id}")
            raise DuplicatePeriodError(existing)

        logger.info(f"Period created: {period} | period_id={period.id} | active={active}")
        return period

    @transaction.atomic
    def set_active(self, period_id, active: bool) -> VotingPeriod:
        """
        Activate or deactivate a period. Activation is exclusive.

        Raises:
            PeriodNotFoundError: If period_id is unknown
        """
        self.lock_periods()
        try:
            period = VotingPeriod.objects.get(pk=period_id)
        except (VotingPeriod.DoesNotExist, ValidationError):
            logger.warning(f"Period not found | period_id={period_id}")
            raise PeriodNotFoundError(period_id)

        if active:
            self.deactivate_others(exclude_pk=period.pk)

        period.active = active
        period.save(update_fields=["active", "updated_at"])

        action = "activated" if active else "deactivated"
        logger.info(f"Period {action}: {period} | period_id={period.id}")
        return period

    def find_active_period(self, mes: str, ano: str) -> Optional[VotingPeriod]:
        """Return the active period for (mes, ano), or None."""
        return VotingPeriod.objects.filter(mes=mes, ano=ano, active=True).first()

    def list_periods(self, active=None, mes=None, ano=None):
        """
        Periods newest first, annotated with `total_votes` and `candidates_with_votes`.
        """
        from voting.models import Vote

        votes = (
            Vote.objects.filter(mes=OuterRef("mes"), ano=OuterRef("ano"))
            .order_by()
            .values("mes")
        )
        total_votes = votes.annotate(c=Count("pk")).values("c")[:1]
        candidates_with_votes = votes.annotate(
            c=Count("candidate", distinct=True)
        ).values("c")[:1]

        qs = VotingPeriod.objects.all()
        if active is not None:
            qs = qs.filter(active=active)
        if mes:
            qs = qs.filter(mes=mes)
        if ano:
            qs = qs.filter(ano=ano)

        return qs.annotate(
            total_votes=Coalesce(
                Subquery(total_votes, output_field=IntegerField()), Value(0)
            ),
            candidates_with_votes=Coalesce(
                Subquery(candidates_with_votes, output_field=IntegerField()), Value(0)
            ),
        )

    def current_status(self, now=None) -> Dict[str, Any]:
        """
        Summary of the active periods and whether one is open right now.
        """
        from candidates.models import Candidate
        from voting.models import Vote

        now = now or timezone.now()
        active_periods = list(
            VotingPeriod.objects.filter(active=True).order_by("-created_at")
        )
        valid_periods = [p for p in active_periods if p.is_open(now)]
        current = valid_periods[0] if valid_periods else None

        period_stats = None
        if current is not None:
            period_stats = {
                "total_votes": Vote.objects.filter(
                    mes=current.mes, ano=current.ano
                ).count(),
                "total_candidates": Candidate.objects.filter(active=True).count(),
            }

        return {
            "has_active_period": current is not None,
            "current_period": current,
            "period_stats": period_stats,
            "total_active_periods": len(active_periods),
            "valid_active_periods": len(valid_periods),
        }

    def lock_periods(self) -> list:
        """
        Row-lock every period, in primary key order, until the surrounding
        transaction ends. Concurrent activations then run one after the
        other instead of both passing the deactivate step.
        """
        return list(
            VotingPeriod.objects.select_for_update()
            .order_by("pk")
            .values_list("pk", flat=True)
        )

    def deactivate_others(self, exclude_pk=None) -> int:
        self.lock_periods()
        qs = VotingPeriod.objects.filter(active=True)
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)
        count = qs.update(active=False, updated_at=timezone.now())
        if count:
            logger.info(f"Deactivated {count} previously active period(s)")
        return count


# Singleton instance
_period_registry: Optional[PeriodRegistry] = None


def get_period_registry() -> PeriodRegistry:
    """Get or create the period registry singleton"""
    global _period_registry
    if _period_registry is None:
        _period_registry = PeriodRegistry()
    return _period_registry
