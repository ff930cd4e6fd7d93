import logging
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from candidates.choices import Curso, Grado
from candidates.models import Candidate
from periods.models import VotingPeriod
from periods.services import get_period_registry

from .models import Vote

logger = logging.getLogger("voting")


def _fecha(value) -> str:
    return timezone.localtime(value).strftime("%d/%m/%Y")


class EligibilityReason(str, Enum):
    PERIOD_NOT_ACTIVE = "PERIOD_NOT_ACTIVE"
    PERIOD_NOT_STARTED = "PERIOD_NOT_STARTED"
    PERIOD_ENDED = "PERIOD_ENDED"
    ALREADY_VOTED = "ALREADY_VOTED"


@dataclass(frozen=True)
class Eligibility:
    """Outcome of an eligibility check."""

    can_vote: bool
    has_voted: bool = False
    reason: Optional[EligibilityReason] = None
    message: str = ""
    period: Optional[Dict[str, Any]] = None
    existing_vote: Optional[Dict[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reason"] = self.reason.value if self.reason else None
        return data


class VotingServiceError(Exception):
    """Base Exception for voting service"""

    error_kind = "VotingError"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PeriodClosedError(VotingServiceError):
    """Base for the period gating failures; carries the eligibility reason"""

    status_code = 403
    reason: EligibilityReason


class PeriodNotActiveError(PeriodClosedError):
    """Raised when no period is active for the month"""

    error_kind = "PeriodNotActive"
    reason = EligibilityReason.PERIOD_NOT_ACTIVE

    def __init__(self, mes: str, ano: str):
        super().__init__(
            f"No hay un período de votación activo para {mes} {ano}. "
            "Contacta al administrador.",
            {"mes": mes, "ano": ano},
        )


class PeriodNotStartedError(PeriodClosedError):
    """Raised when the active period has not started yet"""

    error_kind = "PeriodNotStarted"
    reason = EligibilityReason.PERIOD_NOT_STARTED

    def __init__(self, period: VotingPeriod):
        super().__init__(
            f"El período de votación para {period.mes} {period.ano} comienza el "
            f"{_fecha(period.start_date)}.",
            {"period": period.summary()},
        )


class PeriodEndedError(PeriodClosedError):
    """Raised when the active period is already over"""

    error_kind = "PeriodEnded"
    reason = EligibilityReason.PERIOD_ENDED

    def __init__(self, period: VotingPeriod):
        super().__init__(
            f"El período de votación para {period.mes} {period.ano} finalizó el "
            f"{_fecha(period.end_date)}.",
            {"period": period.summary()},
        )


class CandidateNotFoundError(VotingServiceError):
    """Raised when the candidate does not exist"""

    error_kind = "CandidateNotFound"
    status_code = 404

    def __init__(self, candidate_id):
        super().__init__(
            "El candidato seleccionado no existe", {"candidate_id": str(candidate_id)}
        )


class CandidateInactiveError(VotingServiceError):
    """Raised when the candidate is not available for voting"""

    error_kind = "CandidateInactive"

    def __init__(self, candidate: Candidate):
        super().__init__(
            "El candidato seleccionado no está disponible para votación",
            {"candidate": candidate.summary()},
        )


class CandidateMismatchError(VotingServiceError):
    """Raised when the candidate belongs to another class section"""

    error_kind = "CandidateMismatch"

    def __init__(self, candidate: Candidate, grado: str, curso: str):
        super().__init__(
            f"El candidato {candidate.nombre} {candidate.apellido} no pertenece a "
            f"{grado} - {curso}",
            {"candidate": candidate.summary(), "grado": grado, "curso": curso},
        )


class DuplicateVoteError(VotingServiceError):
    """Raised when the class section already voted this month"""

    error_kind = "DuplicateVote"
    status_code = 409

    def __init__(self, existing: Vote):
        super().__init__(
            f"Ya se registró un voto para {existing.grado} - {existing.curso} en "
            f"{existing.mes} {existing.ano}",
            {"existing_vote": _existing_vote_summary(existing)},
        )


def _existing_vote_summary(vote: Vote) -> Dict[str, Any]:
    return {
        "candidate": {
            "nombre": vote.candidate.nombre,
            "apellido": vote.candidate.apellido,
        },
        "timestamp": vote.timestamp.isoformat(),
        "period": vote.period_label,
        "grado": vote.grado,
        "curso": vote.curso,
    }


class VotingService:
    """
    Eligibility checks and vote recording.

    The (grado, curso, mes, ano) unique constraint of the Vote table decides
    duplicates; the lookups done here only produce a friendlier message.
    """

    def __init__(self):
        self.period_registry = get_period_registry()

    def check_eligibility(
        self, grado: str, curso: str, mes: str, ano: str, now=None
    ) -> Eligibility:
        """
        Tell whether the class section may vote for (mes, ano) at `now`.

        Read-only: calling it repeatedly without state changes gives the same answer.
        """
        now = now or timezone.now()

        try:
            period = self._check_period(mes, ano, now)
        except PeriodClosedError as e:
            return Eligibility(
                can_vote=False,
                reason=e.reason,
                message=e.message,
                period=e.details.get("period"),
            )

        existing = self._find_existing_vote(grado, curso, mes, ano)
        if existing is not None:
            return Eligibility(
                can_vote=False,
                has_voted=True,
                reason=EligibilityReason.ALREADY_VOTED,
                message=(
                    f"Ya votaste por {existing.candidate.nombre} "
                    f"{existing.candidate.apellido} en {existing.mes} {existing.ano}"
                ),
                period=period.summary(),
                existing_vote=_existing_vote_summary(existing),
            )

        return Eligibility(
            can_vote=True,
            message=f"Puedes votar para {grado} - {curso} en {mes} {ano}",
            period=period.summary(),
        )

    @transaction.atomic  # Database transaction - all or nothing
    def record_vote(
        self, candidate_id, grado: str, curso: str, mes: str, ano: str, now=None
    ) -> Dict[str, Any]:
        """
        Record the vote of a class section, re-validating every rule at write time.

        Returns:
            The recorded vote with the candidate summary

        Raises:
            PeriodNotActiveError, PeriodNotStartedError, PeriodEndedError:
                If the period gate is closed
            CandidateNotFoundError: If the candidate does not exist
            CandidateInactiveError: If the candidate is inactive
            CandidateMismatchError: If the candidate is in another section
            DuplicateVoteError: If the section already voted for the month
        """
        # Using request IDs for Tracing logs
        request_id = str(uuid.uuid4())[:8]
        now = now or timezone.now()
        logger.debug(
            f"[{request_id}] Vote attempt | {grado} - {curso} | {mes} {ano} | candidate={candidate_id}"
        )

        try:
            self._check_period(mes, ano, now)
            candidate = self._load_candidate(candidate_id, grado, curso)

            existing = self._find_existing_vote(grado, curso, mes, ano)
            if existing is not None:
                raise DuplicateVoteError(existing)

            try:
                with transaction.atomic():
                    vote = Vote.objects.create(
                        candidate=candidate, grado=grado, curso=curso, mes=mes, ano=ano
                    )
            except IntegrityError:
                existing = self._find_existing_vote(grado, curso, mes, ano)
                if existing is None:
                    raise
                # a concurrent submission for the same section won the race
                logger.info(f"[{request_id}] Duplicate vote rejected by the database")
                raise DuplicateVoteError(existing)
        except VotingServiceError as e:
            logger.warning(f"[{request_id}] Vote rejected: {e.error_kind} - {e.message}")
            raise

        transaction.on_commit(lambda: self._invalidate_cache(mes, ano))

        logger.info(
            f"[{request_id}] Vote successfully cast.",
            extra={"vote_id": str(vote.id), "section": f"{grado}-{curso}"},
        )
        return {
            "id": str(vote.id),
            "candidate": candidate.summary(),
            "grado": vote.grado,
            "curso": vote.curso,
            "mes": vote.mes,
            "ano": vote.ano,
            "period": vote.period_label,
            "timestamp": vote.timestamp,
        }

    def _check_period(self, mes: str, ano: str, now) -> VotingPeriod:
        """Return the open period for (mes, ano) or raise the matching gate error."""
        period = self.period_registry.find_active_period(mes, ano)
        if period is None:
            raise PeriodNotActiveError(mes, ano)
        if now < period.start_date:
            raise PeriodNotStartedError(period)
        if now > period.end_date:
            raise PeriodEndedError(period)
        return period

    def _load_candidate(self, candidate_id, grado: str, curso: str) -> Candidate:
        try:
            candidate = Candidate.objects.get(pk=candidate_id)
        except (Candidate.DoesNotExist, ValidationError):
            raise CandidateNotFoundError(candidate_id)

        if not candidate.active:
            raise CandidateInactiveError(candidate)
        if candidate.grado != grado or candidate.curso != curso:
            raise CandidateMismatchError(candidate, grado, curso)
        return candidate

    def _find_existing_vote(
        self, grado: str, curso: str, mes: str, ano: str
    ) -> Optional[Vote]:
        return (
            Vote.objects.select_related("candidate")
            .filter(grado=grado, curso=curso, mes=mes, ano=ano)
            .first()
        )

    def _results_cache_key(self, mes, ano, grado=None, curso=None) -> str:
        return f"period_results:{mes}:{ano}:{grado or '*'}:{curso or '*'}"

    def _invalidate_cache(self, mes: str, ano: str) -> None:
        """Clear every cached result variant of the period"""
        grados = [None, *Grado.values]
        cursos = [None, *Curso.values]
        cache.delete_many(
            [self._results_cache_key(mes, ano, g, c) for g in grados for c in cursos]
        )
        logger.debug(f"Cache invalidated for period {mes} {ano}")

    def list_votes(self, mes: str, ano: str, grado=None, curso=None):
        qs = Vote.objects.filter(mes=mes, ano=ano).select_related("candidate")
        if grado:
            qs = qs.filter(grado=grado)
        if curso:
            qs = qs.filter(curso=curso)
        return qs.order_by("-timestamp")

    def get_period_results(
        self, mes: str, ano: str, grado=None, curso=None, use_cache: bool = True
    ) -> Dict[str, Any]:
        """
        Votes per candidate for a period, most voted first.

        Args:
            mes, ano: the period
            grado, curso: optional class-section filters
            use_cache: whether to use cached results (default: True)
        """
        cache_key = self._results_cache_key(mes, ano, grado, curso)
        if use_cache:
            cached_results = cache.get(cache_key)
            if cached_results:
                logger.debug(f"Returning cached results for {mes} {ano}")
                return cached_results

        results = (
            self.list_votes(mes, ano, grado, curso)
            .values(
                "candidate__id",
                "candidate__nombre",
                "candidate__apellido",
                "candidate__grado",
                "candidate__curso",
                "candidate__active",
            )
            .annotate(vote_count=Count("id"))
            .order_by("-vote_count", "candidate__apellido", "candidate__nombre")
        )

        total_votes = sum(r["vote_count"] for r in results)

        candidates = [
            {
                "candidate": {
                    "id": str(r["candidate__id"]),
                    "nombre": r["candidate__nombre"],
                    "apellido": r["candidate__apellido"],
                    "grado": r["candidate__grado"],
                    "curso": r["candidate__curso"],
                    "active": r["candidate__active"],
                },
                "votes": r["vote_count"],
                "percentage": round(
                    (r["vote_count"] / total_votes * 100) if total_votes > 0 else 0, 2
                ),
            }
            for r in results
        ]

        formatted_results = {
            "period": {"mes": mes, "ano": ano},
            "filters": {"grado": grado, "curso": curso},
            "total_votes": total_votes,
            "total_candidates": len(candidates),
            "winner": candidates[0] if candidates else None,
            "candidates": candidates,
        }

        cache.set(
            cache_key, formatted_results, timeout=settings.BANDERA_RESULTS_CACHE_TIMEOUT
        )
        return formatted_results


# Singleton instance
_voting_service: Optional[VotingService] = None


def get_voting_service() -> VotingService:
    """Get or create the voting service singleton"""
    global _voting_service
    if _voting_service is None:
        _voting_service = VotingService()
    return _voting_service
