from django.db import models


class Grado(models.TextChoices):
    PRIMERO = "1ro", "1ro"
    SEGUNDO = "2do", "2do"
    TERCERO = "3ro", "3ro"
    CUARTO = "4to", "4to"
    QUINTO = "5to", "5to"
    SEXTO = "6to", "6to"


class Curso(models.TextChoices):
    ARRAYAN = "Arrayan", "Arrayan"
    JACARANDA = "Jacarandá", "Jacarandá"
    CEIBO = "Ceibo", "Ceibo"


class Mes(models.TextChoices):
    ENERO = "Enero", "Enero"
    FEBRERO = "Febrero", "Febrero"
    MARZO = "Marzo", "Marzo"
    ABRIL = "Abril", "Abril"
    MAYO = "Mayo", "Mayo"
    JUNIO = "Junio", "Junio"
    JULIO = "Julio", "Julio"
    AGOSTO = "Agosto", "Agosto"
    SEPTIEMBRE = "Septiembre", "Septiembre"
    OCTUBRE = "Octubre", "Octubre"
    NOVIEMBRE = "Noviembre", "Noviembre"
    DICIEMBRE = "Diciembre", "Diciembre"


# Years are stored as 4-digit strings ("2025").
ANO_REGEX = r"^\d{4}$"
