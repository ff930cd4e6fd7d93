from rest_framework import serializers

from candidates.choices import ANO_REGEX, Curso, Grado, Mes

from .models import Vote


class SectionPeriodSerializer(serializers.Serializer):
    """
    The (grado, curso, mes, ano) key shared by eligibility checks and votes.
    """

    grado = serializers.ChoiceField(
        choices=Grado.choices, error_messages={"invalid_choice": "Grado debe ser válido"}
    )
    curso = serializers.ChoiceField(
        choices=Curso.choices, error_messages={"invalid_choice": "Curso debe ser válido"}
    )
    mes = serializers.ChoiceField(choices=Mes.choices)
    ano = serializers.RegexField(
        ANO_REGEX, error_messages={"invalid": "Año debe tener 4 dígitos"}
    )


class VoteCreateSerializer(SectionPeriodSerializer):
    """
    Input of a new vote. Business rules are validated by the voting service.
    """

    candidate_id = serializers.CharField(max_length=64)


class ResultsQuerySerializer(serializers.Serializer):
    mes = serializers.ChoiceField(choices=Mes.choices)
    ano = serializers.RegexField(ANO_REGEX)
    grado = serializers.ChoiceField(choices=Grado.choices, required=False)
    curso = serializers.ChoiceField(choices=Curso.choices, required=False)


class CandidateSummarySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    nombre = serializers.CharField()
    apellido = serializers.CharField()
    grado = serializers.CharField()
    curso = serializers.CharField()


class VoteListSerializer(serializers.ModelSerializer):
    """
    Serializer for listing votes (GET request)
    """

    candidate = CandidateSummarySerializer(source="candidate.summary", read_only=True)

    class Meta:
        model = Vote
        fields = ["id", "candidate", "grado", "curso", "mes", "ano", "timestamp"]


class RecordedVoteSerializer(serializers.Serializer):
    """Output of a successfully recorded vote."""

    id = serializers.UUIDField()
    candidate = CandidateSummarySerializer()
    grado = serializers.CharField()
    curso = serializers.CharField()
    mes = serializers.CharField()
    ano = serializers.CharField()
    period = serializers.CharField()
    timestamp = serializers.DateTimeField()
