import logging

from django.db import DatabaseError
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from candidates.permissions import IsAdminOrReadOnly

from .models import VotingPeriod
from .serializers import (
    PeriodQuerySerializer,
    PeriodStatusSerializer,
    PeriodToggleSerializer,
    VotingPeriodCreateSerializer,
    VotingPeriodSerializer,
)
from .services import PeriodServiceError, get_period_registry

logger = logging.getLogger("periods")


def _error_response(exc: PeriodServiceError) -> Response:
    return Response(
        {
            "status": "error",
            "error_kind": exc.error_kind,
            "message": exc.message,
            "details": exc.details,
        },
        status=exc.status_code,
    )


def _internal_error(message: str) -> Response:
    return Response(
        {"status": "error", "error_kind": "InternalError", "message": message},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class PeriodListCreateView(APIView):
    """
    GET /api/v1/periods/?active=&mes=&ano=

    List voting periods with their vote statistics.

    POST /api/v1/periods/

    Create a period. Admins only. Creating an active period deactivates the
    currently active one.
    """

    permission_classes = [IsAdminOrReadOnly]

    def get(self, request):
        query = PeriodQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)

        periods = get_period_registry().list_periods(**query.validated_data)
        serializer = VotingPeriodSerializer(periods, many=True)
        return Response(
            {
                "status": "success",
                "data": serializer.data,
                "count": len(serializer.data),
            }
        )

    def post(self, request):
        logger.debug(f"Incoming data: {request.data}")
        serializer = VotingPeriodCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            period = get_period_registry().create_period(**serializer.validated_data)
        except PeriodServiceError as e:
            return _error_response(e)
        except DatabaseError:
            logger.exception("Database error while creating a period")
            return _internal_error("No se pudo crear el período de votación")

        return Response(
            {
                "status": "success",
                "message": f"Período de votación para {period.mes} {period.ano} creado exitosamente",
                "data": VotingPeriodSerializer(period).data,
            },
            status=status.HTTP_201_CREATED,
        )


class PeriodDetailView(APIView):
    """
    GET /api/v1/periods/<period_id>/
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, period_id):
        period = get_object_or_404(VotingPeriod, pk=period_id)
        return Response(
            {"status": "success", "data": VotingPeriodSerializer(period).data}
        )


class PeriodToggleView(APIView):
    """
    POST /api/v1/periods/<period_id>/toggle/

    Request body:
    {
        "active": true   // or false
    }

    Activating a period deactivates every other period in the same transaction.
    """

    permission_classes = [permissions.IsAdminUser]

    def post(self, request, period_id):
        serializer = PeriodToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        active = serializer.validated_data["active"]
        logger.info(
            f"Period status change requested | period_id={period_id} | active={active}"
        )

        try:
            period = get_period_registry().set_active(period_id, active)
        except PeriodServiceError as e:
            return _error_response(e)
        except DatabaseError:
            logger.exception(f"Database error while toggling period {period_id}")
            return _internal_error("No se pudo actualizar el período")

        action = "activado" if active else "desactivado"
        return Response(
            {
                "status": "success",
                "message": f"Período {period.mes} {period.ano} {action} exitosamente",
                "data": VotingPeriodSerializer(period).data,
            }
        )


class PeriodStatusView(APIView):
    """
    GET /api/v1/periods/status/

    Whether a period is active and open right now. No authentication required.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        result = get_period_registry().current_status()
        current = result["current_period"]
        return Response(
            {
                "status": "success",
                "message": (
                    f"Período activo: {current.mes} {current.ano}"
                    if current
                    else "No hay períodos de votación activos"
                ),
                "data": PeriodStatusSerializer(result).data,
            }
        )
