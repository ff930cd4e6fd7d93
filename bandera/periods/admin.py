import logging

from django.contrib import admin
from django.db import transaction

from .models import VotingPeriod
from .services import get_period_registry

logger = logging.getLogger("periods")


@admin.register(VotingPeriod)
class VotingPeriodAdmin(admin.ModelAdmin):
    list_display = ("mes", "ano", "active", "start_date", "end_date")
    list_filter = ("active", "ano")

    def has_delete_permission(self, request, obj=None):
        # periods are kept for the history of votes
        return False

    def save_model(self, request, obj, form, change):
        if change:
            logger.info(f"Period updated by admin : {request.user.username} - {obj.id}")
        else:
            logger.info(f"Period created by admin: {request.user.username} - {obj.id}")

        with transaction.atomic():
            if obj.active:
                get_period_registry().deactivate_others(exclude_pk=obj.pk)
            super().save_model(request, obj, form, change)
