import re

from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import serializers

from candidates.choices import ANO_REGEX, Mes

from .models import VotingPeriod

_TIME_PART = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}", re.IGNORECASE)


class InstantField(serializers.DateTimeField):
    """
    A DateTimeField that only accepts full ISO-8601 instants.

    Date-only values and datetimes without a UTC offset are rejected instead
    of being read in the server time zone.
    """

    default_error_messages = {
        "not_instant": "Debe ser una fecha y hora ISO-8601 con zona horaria (ej. 2025-04-30T23:59:59Z).",
    }

    def to_internal_value(self, value):
        if isinstance(value, str):
            value = value.strip()
            try:
                parsed = parse_datetime(value)
            except ValueError:
                # well formed but out of range, e.g. 2025-02-30
                parsed = None
            if not _TIME_PART.match(value) or parsed is None or timezone.is_naive(parsed):
                self.fail("not_instant")
        return super().to_internal_value(value)


class VotingPeriodSerializer(serializers.ModelSerializer):
    """
    Read serializer for voting periods.

    `stats` is filled only when the queryset comes from PeriodRegistry.list_periods().
    """

    stats = serializers.SerializerMethodField()

    class Meta:
        model = VotingPeriod
        fields = [
            "id",
            "mes",
            "ano",
            "active",
            "start_date",
            "end_date",
            "created_at",
            "updated_at",
            "stats",
        ]
        read_only_fields = fields

    def get_stats(self, obj):
        if not hasattr(obj, "total_votes"):
            return None
        return {
            "total_votes": obj.total_votes,
            "candidates_with_votes": obj.candidates_with_votes,
        }


class VotingPeriodCreateSerializer(serializers.Serializer):
    """
    Validates the input of a new period. The date range rule is enforced by
    the registry so it can be reported as InvalidDateRange.
    """

    mes = serializers.ChoiceField(choices=Mes.choices)
    ano = serializers.RegexField(
        ANO_REGEX, error_messages={"invalid": "Año debe tener 4 dígitos"}
    )
    active = serializers.BooleanField(default=False)
    start_date = InstantField()
    end_date = InstantField()


class PeriodToggleSerializer(serializers.Serializer):
    active = serializers.BooleanField(required=True)


class PeriodQuerySerializer(serializers.Serializer):
    """Optional filters of the period list."""

    active = serializers.BooleanField(required=False, allow_null=True, default=None)
    mes = serializers.ChoiceField(choices=Mes.choices, required=False)
    ano = serializers.RegexField(ANO_REGEX, required=False)


class PeriodStatusSerializer(serializers.Serializer):
    has_active_period = serializers.BooleanField()
    current_period = VotingPeriodSerializer(allow_null=True)
    period_stats = serializers.DictField(allow_null=True)
    total_active_periods = serializers.IntegerField()
    valid_active_periods = serializers.IntegerField()
