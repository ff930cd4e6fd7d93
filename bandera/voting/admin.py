from django.contrib import admin

from .models import Vote


@admin.register(Vote)
class VoteAdmin(admin.ModelAdmin):
    """Votes are read-only once cast."""

    list_display = ("grado", "curso", "mes", "ano", "candidate", "timestamp")
    list_filter = ("ano", "mes", "grado", "curso")
    list_select_related = ("candidate",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
