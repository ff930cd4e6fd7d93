import logging

from django.db import DatabaseError
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    RecordedVoteSerializer,
    ResultsQuerySerializer,
    SectionPeriodSerializer,
    VoteCreateSerializer,
    VoteListSerializer,
)
from .services import VotingServiceError, get_voting_service

logger = logging.getLogger(__name__)


class EligibilityView(APIView):
    """
    GET /api/v1/voting/eligibility/?grado=&curso=&mes=&ano=

    Tell whether a class section can vote right now. Never writes anything.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        serializer = SectionPeriodSerializer(data=request.query_params.dict())
        serializer.is_valid(raise_exception=True)

        try:
            eligibility = get_voting_service().check_eligibility(
                **serializer.validated_data
            )
        except DatabaseError:
            logger.exception("Database error while checking eligibility")
            return Response(
                {
                    "status": "error",
                    "error_kind": "InternalError",
                    "message": "No se pudo verificar el estado del voto",
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(
            {
                "status": "success",
                "message": eligibility.message,
                "data": eligibility.as_dict(),
            }
        )


class VoteCreateView(APIView):
    """
    API endpoint for voting operations.

    POST: cast the vote of a class section for a month.
    GET: list the votes of a month (?mes=&ano=, optional grado and curso).
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        query = ResultsQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)

        votes = get_voting_service().list_votes(**query.validated_data)
        serializer = VoteListSerializer(votes, many=True)
        return Response(
            {
                "status": "success",
                "data": serializer.data,
                "count": len(serializer.data),
                "period": {
                    "mes": query.validated_data["mes"],
                    "ano": query.validated_data["ano"],
                },
            }
        )

    def post(self, request):
        """
        Custom create response with vote receipt.
        cast a vote using service layer
        """
        serializer = VoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        voting_service = get_voting_service()

        try:
            vote = voting_service.record_vote(**serializer.validated_data)

        except VotingServiceError as e:
            return Response(
                {
                    "status": "error",
                    "error_kind": e.error_kind,
                    "message": e.message,
                    "details": e.details,
                },
                status=e.status_code,
            )

        except DatabaseError:
            logger.exception("Database error while recording a vote")
            return Response(
                {
                    "status": "error",
                    "error_kind": "InternalError",
                    "message": "No se pudo registrar el voto",
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        candidate = vote["candidate"]
        return Response(
            {
                "status": "success",
                "message": (
                    f"¡Voto registrado exitosamente! Has votado por {candidate['nombre']} "
                    f"{candidate['apellido']} para {vote['period']}"
                ),
                "data": RecordedVoteSerializer(vote).data,
            },
            status=status.HTTP_201_CREATED,
        )


class PeriodResultsView(APIView):
    """
    GET /api/v1/voting/results/?mes=&ano=&grado=&curso=

    Votes per candidate for a month, cached until the next vote of that month.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        query = ResultsQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)

        results = get_voting_service().get_period_results(**query.validated_data)
        return Response(
            {
                "status": "success",
                "message": "Resultados obtenidos correctamente",
                "data": results,
            }
        )
