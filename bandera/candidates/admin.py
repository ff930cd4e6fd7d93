import logging

from django.contrib import admin

from .models import Candidate

logger = logging.getLogger("candidates")


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ("apellido", "nombre", "grado", "curso", "active")
    list_filter = ("grado", "curso", "active")
    search_fields = ("nombre", "apellido")

    def save_model(self, request, obj, form, change):
        if change:
            logger.info(
                f"Candidate updated by admin: {request.user.username} - {obj.id}"
            )
        else:
            logger.info(
                f"Candidate added by admin : {request.user.username} - {obj.id}"
            )
        super().save_model(request, obj, form, change)
