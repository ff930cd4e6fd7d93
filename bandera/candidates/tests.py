from io import StringIO

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from voting.models import Vote

from .models import Candidate
from .permissions import IsAdminOrReadOnly


class CandidateAPITest(APITestCase):
    def setUp(self):
        self.admin = get_user_model().objects.create_user(
            username="admin", password="empathy2024", is_staff=True
        )
        self.list_url = reverse("candidates:candidate-list")
        self.juan = Candidate.objects.create(
            nombre="Juan", apellido="Pérez", grado="1ro", curso="Arrayan"
        )

    def detail_url(self, candidate):
        return reverse("candidates:candidate-detail", args=[candidate.id])

    def test_admin_creates_candidate(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.list_url,
            {"nombre": "  Lucía ", "apellido": "Fernández", "grado": "3ro", "curso": "Ceibo"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["nombre"], "Lucía")
        self.assertTrue(response.data["active"])

    def test_anonymous_cannot_create_candidate(self):
        response = self.client.post(
            self.list_url,
            {"nombre": "Lucía", "apellido": "Fernández", "grado": "3ro", "curso": "Ceibo"},
            format="json",
        )

        self.assertIn(
            response.status_code,
            (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN),
        )

    def test_non_staff_user_cannot_create_candidate(self):
        docente = get_user_model().objects.create_user(username="docente", password="clave")
        self.client.force_authenticate(docente)

        response = self.client.post(
            self.list_url,
            {"nombre": "Lucía", "apellido": "Fernández", "grado": "3ro", "curso": "Ceibo"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(str(response.data["detail"]), IsAdminOrReadOnly.message)
        self.assertEqual(Candidate.objects.count(), 1)

    # names are compared without case inside the same section
    def test_duplicate_candidate_is_rejected(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.list_url,
            {"nombre": "JUAN", "apellido": "pérez", "grado": "1ro", "curso": "Arrayan"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error_kind"], "DuplicateCandidate")
        self.assertEqual(response.data["details"]["existing"]["id"], str(self.juan.id))

    def test_same_name_in_other_section_is_allowed(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.list_url,
            {"nombre": "Juan", "apellido": "Pérez", "grado": "2do", "curso": "Arrayan"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_invalid_grado(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.list_url,
            {"nombre": "Lucía", "apellido": "Fernández", "grado": "7mo", "curso": "Ceibo"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("grado", response.data)

    def test_filter_by_section(self):
        Candidate.objects.create(nombre="Carlos", apellido="Rodríguez", grado="2do", curso="Jacarandá")

        response = self.client.get(self.list_url, {"grado": "2do"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c["nombre"] for c in response.data], ["Carlos"])

    def test_update_candidate(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(self.detail_url(self.juan), {"active": False}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.juan.refresh_from_db()
        self.assertFalse(self.juan.active)

    def test_delete_candidate_without_votes(self):
        self.client.force_authenticate(self.admin)

        response = self.client.delete(self.detail_url(self.juan))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Candidate.objects.filter(pk=self.juan.pk).exists())

    # candidates with votes are deactivated to keep the vote history
    def test_delete_candidate_with_votes_deactivates(self):
        Vote.objects.create(candidate=self.juan, grado="1ro", curso="Arrayan", mes="Marzo", ano="2025")
        self.client.force_authenticate(self.admin)

        response = self.client.delete(self.detail_url(self.juan))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.juan.refresh_from_db()
        self.assertFalse(self.juan.active)
        self.assertEqual(Vote.objects.count(), 1)


class SeedCommandTest(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_bandera", stdout=StringIO())
        call_command("seed_bandera", stdout=StringIO())

        admin = get_user_model().objects.get(username=settings.BANDERA_ADMIN_USERNAME)
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.check_password(settings.BANDERA_ADMIN_PASSWORD))
        self.assertEqual(Candidate.objects.count(), 3)

    def test_seed_without_candidates(self):
        call_command("seed_bandera", "--sin-candidatos", stdout=StringIO())

        self.assertFalse(Candidate.objects.exists())
