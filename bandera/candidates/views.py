import logging

from django.db import IntegrityError, transaction
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.filters import OrderingFilter
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet

from .models import Candidate
from .permissions import IsAdminOrReadOnly
from .serializers import CandidateSerializer

logger = logging.getLogger("candidates")


class DuplicateCandidate(APIException):
    """Another active candidate with the same name exists in the section."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "duplicate_candidate"

    def __init__(self, existing=None, message=None):
        if message is None:
            message = (
                f"{existing.nombre} {existing.apellido} ya existe en "
                f"{existing.grado} - {existing.curso}"
            )
        detail = {
            "status": "error",
            "error_kind": "DuplicateCandidate",
            "message": message,
            "details": {"existing": existing.summary()} if existing else {},
        }
        super().__init__(detail=detail)


class CandidateViewSet(ModelViewSet):
    """
    API endpoint to list, create, update and remove candidates.

    Candidates that already received votes are deactivated instead of deleted.
    """

    queryset = Candidate.objects.all()
    serializer_class = CandidateSerializer
    permission_classes = [IsAdminOrReadOnly]

    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ["grado", "curso", "active"]
    ordering_fields = ["apellido", "nombre", "created_at"]

    def _save_unique(self, serializer):
        duplicate = serializer.find_duplicate()
        if duplicate is not None:
            logger.warning(f"Duplicate candidate rejected: {duplicate}")
            raise DuplicateCandidate(duplicate)
        try:
            with transaction.atomic():
                return serializer.save()
        except IntegrityError:
            # an inactive homonym still holds the name+section unique key
            logger.warning("Candidate rejected by unique constraint")
            raise DuplicateCandidate(message="Ya existe un candidato con estos datos")

    def perform_create(self, serializer):
        candidate = self._save_unique(serializer)
        logger.info(f"Candidate created: {candidate} - {candidate.id}")

    def perform_update(self, serializer):
        candidate = self._save_unique(serializer)
        logger.info(f"Candidate updated: {candidate} - {candidate.id}")

    @transaction.atomic
    def destroy(self, request, *args, **kwargs):
        candidate = self.get_object()

        if candidate.votes.exists():
            candidate.active = False
            candidate.save(update_fields=["active", "updated_at"])
            logger.info(f"Candidate deactivated (has votes): {candidate.id}")
            return Response(
                {
                    "status": "success",
                    "message": (
                        f"Candidato {candidate.nombre} {candidate.apellido} "
                        "desactivado (tiene votos asociados)"
                    ),
                    "data": self.get_serializer(candidate).data,
                }
            )

        data = candidate.summary()
        candidate.delete()
        logger.info(f"Candidate deleted: {data['id']}")
        return Response(
            {
                "status": "success",
                "message": (
                    f"Candidato {data['nombre']} {data['apellido']} eliminado completamente"
                ),
                "data": data,
            }
        )
