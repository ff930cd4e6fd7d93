import logging

from rest_framework import serializers

from .models import Candidate

logger = logging.getLogger("candidates")


class CandidateSerializer(serializers.ModelSerializer):
    """
    Serializer for creating and updating Candidate instances.
    It handles the serialization and deserialization of the candidates data.
    """

    class Meta:
        model = Candidate
        fields = [
            "id",
            "nombre",
            "apellido",
            "grado",
            "curso",
            "active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        # name+section uniqueness is checked case-insensitively by find_duplicate()
        validators = []

    def validate_nombre(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Nombre es requerido")
        return value

    def validate_apellido(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Apellido es requerido")
        return value

    def find_duplicate(self):
        """
        Return another active candidate with the same name in the same section, if any.

        Must be called after `is_valid()`.
        """
        instance = self.instance
        data = self.validated_data
        nombre = data.get("nombre", instance.nombre if instance else None)
        apellido = data.get("apellido", instance.apellido if instance else None)
        grado = data.get("grado", instance.grado if instance else None)
        curso = data.get("curso", instance.curso if instance else None)

        logger.debug(
            f"Checking duplicates for candidate: {nombre} {apellido} {grado}-{curso}, instance = {instance}"
        )

        qs = Candidate.objects.filter(
            nombre__iexact=nombre,
            apellido__iexact=apellido,
            grado=grado,
            curso=curso,
            active=True,
        )
        if instance:
            qs = qs.exclude(pk=instance.pk)
        return qs.first()
