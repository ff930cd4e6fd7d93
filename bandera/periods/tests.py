import uuid
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from candidates.models import Candidate
from voting.models import Vote

from .models import VotingPeriod
from .services import (
    DuplicatePeriodError,
    InvalidDateRangeError,
    PeriodNotFoundError,
    PeriodRegistry,
)

MARCH_START = datetime(2025, 3, 1, tzinfo=dt_timezone.utc)
MARCH_END = datetime(2025, 3, 31, 23, 59, 59, tzinfo=dt_timezone.utc)
APRIL_START = datetime(2025, 4, 1, tzinfo=dt_timezone.utc)
APRIL_END = datetime(2025, 4, 30, 23, 59, 59, tzinfo=dt_timezone.utc)


class PeriodRegistryTest(TestCase):
    def setUp(self):
        self.registry = PeriodRegistry()

    def assertSingleActive(self):
        self.assertLessEqual(VotingPeriod.objects.filter(active=True).count(), 1)

    def test_create_period(self):
        period = self.registry.create_period(
            "Marzo", "2025", True, MARCH_START, MARCH_END
        )

        self.assertEqual(VotingPeriod.objects.count(), 1)
        self.assertTrue(period.active)
        self.assertEqual(period.start_date, MARCH_START)

    # a second period for the same month and year is rejected
    def test_duplicate_period(self):
        self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)

        with self.assertRaises(DuplicatePeriodError) as ctx:
            self.registry.create_period("Marzo", "2025", False, MARCH_START, MARCH_END)

        self.assertEqual(ctx.exception.error_kind, "DuplicatePeriod")
        self.assertEqual(ctx.exception.details["existing"]["mes"], "Marzo")
        self.assertEqual(VotingPeriod.objects.count(), 1)

    def test_end_date_must_be_after_start_date(self):
        with self.assertRaises(InvalidDateRangeError):
            self.registry.create_period("Marzo", "2025", False, MARCH_END, MARCH_START)

        with self.assertRaises(InvalidDateRangeError):
            self.registry.create_period("Marzo", "2025", False, MARCH_START, MARCH_START)

        self.assertFalse(VotingPeriod.objects.exists())

    def test_creating_active_period_deactivates_others(self):
        march = self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        april = self.registry.create_period("Abril", "2025", True, APRIL_START, APRIL_END)

        march.refresh_from_db()
        self.assertFalse(march.active)
        self.assertTrue(april.active)
        self.assertSingleActive()

    def test_rejected_active_period_keeps_current_one(self):
        march = self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)

        with self.assertRaises(DuplicatePeriodError):
            self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)

        march.refresh_from_db()
        self.assertTrue(march.active)

    # activating B while A is active leaves only B active
    def test_set_active_is_exclusive(self):
        period_a = self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        period_b = self.registry.create_period("Abril", "2025", False, APRIL_START, APRIL_END)

        self.registry.set_active(period_b.id, True)

        period_a = VotingPeriod.objects.get(pk=period_a.pk)
        period_b = VotingPeriod.objects.get(pk=period_b.pk)
        self.assertFalse(period_a.active)
        self.assertTrue(period_b.active)

    def test_set_inactive(self):
        period = self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)

        updated = self.registry.set_active(period.id, False)

        self.assertFalse(updated.active)
        self.assertFalse(VotingPeriod.objects.filter(active=True).exists())

    def test_set_active_unknown_period(self):
        with self.assertRaises(PeriodNotFoundError):
            self.registry.set_active(uuid.uuid4(), True)

        with self.assertRaises(PeriodNotFoundError):
            self.registry.set_active("not-a-uuid", True)

    def test_single_active_invariant_over_toggle_sequence(self):
        ids = [
            self.registry.create_period(mes, "2025", False, start, start + timedelta(days=20)).id
            for mes, start in [
                ("Marzo", MARCH_START),
                ("Abril", APRIL_START),
                ("Mayo", datetime(2025, 5, 1, tzinfo=dt_timezone.utc)),
            ]
        ]

        for period_id, active in [
            (ids[0], True),
            (ids[1], True),
            (ids[1], True),
            (ids[2], True),
            (ids[2], False),
            (ids[0], True),
        ]:
            self.registry.set_active(period_id, active)
            self.assertSingleActive()

        self.assertEqual(VotingPeriod.objects.get(active=True).id, ids[0])

    def test_lock_periods_returns_every_period_in_pk_order(self):
        ids = [
            self.registry.create_period("Marzo", "2025", False, MARCH_START, MARCH_END).pk,
            self.registry.create_period("Abril", "2025", False, APRIL_START, APRIL_END).pk,
        ]

        with transaction.atomic():
            locked = self.registry.lock_periods()

        self.assertEqual(locked, sorted(ids))

    # all rows are locked before the target is read or others are deactivated
    def test_set_active_locks_periods_before_switching(self):
        march = self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        april = self.registry.create_period("Abril", "2025", False, APRIL_START, APRIL_END)
        active_at_lock = []

        def record_lock():
            active_at_lock.append(
                list(VotingPeriod.objects.filter(active=True).values_list("pk", flat=True))
            )
            return []

        with mock.patch.object(self.registry, "lock_periods", side_effect=record_lock):
            self.registry.set_active(april.id, True)

        self.assertEqual(active_at_lock[0], [march.pk])
        self.assertEqual(
            list(VotingPeriod.objects.filter(active=True).values_list("pk", flat=True)),
            [april.pk],
        )

    # the database refuses a second active row even when the registry is bypassed
    def test_storage_rejects_two_active_periods(self):
        VotingPeriod.objects.create(
            mes="Marzo", ano="2025", active=True, start_date=MARCH_START, end_date=MARCH_END
        )

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                VotingPeriod.objects.create(
                    mes="Abril",
                    ano="2025",
                    active=True,
                    start_date=APRIL_START,
                    end_date=APRIL_END,
                )

    def test_find_active_period(self):
        self.registry.create_period("Marzo", "2025", False, MARCH_START, MARCH_END)
        self.assertIsNone(self.registry.find_active_period("Marzo", "2025"))

        april = self.registry.create_period("Abril", "2025", True, APRIL_START, APRIL_END)
        self.assertEqual(self.registry.find_active_period("Abril", "2025"), april)
        self.assertIsNone(self.registry.find_active_period("Abril", "2024"))

    def test_list_periods_with_stats(self):
        self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        self.registry.create_period("Abril", "2025", False, APRIL_START, APRIL_END)
        juan = Candidate.objects.create(nombre="Juan", apellido="Pérez", grado="1ro", curso="Arrayan")
        carlos = Candidate.objects.create(nombre="Carlos", apellido="Rodríguez", grado="2do", curso="Ceibo")
        Vote.objects.create(candidate=juan, grado="1ro", curso="Arrayan", mes="Marzo", ano="2025")
        Vote.objects.create(candidate=carlos, grado="2do", curso="Ceibo", mes="Marzo", ano="2025")

        periods = {p.mes: p for p in self.registry.list_periods()}

        self.assertEqual(periods["Marzo"].total_votes, 2)
        self.assertEqual(periods["Marzo"].candidates_with_votes, 2)
        self.assertEqual(periods["Abril"].total_votes, 0)
        self.assertEqual(
            [p.mes for p in self.registry.list_periods(active=True)], ["Marzo"]
        )

    def test_current_status(self):
        self.registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        Candidate.objects.create(nombre="Juan", apellido="Pérez", grado="1ro", curso="Arrayan")

        inside = self.registry.current_status(now=datetime(2025, 3, 15, tzinfo=dt_timezone.utc))
        outside = self.registry.current_status(now=datetime(2025, 4, 15, tzinfo=dt_timezone.utc))

        self.assertTrue(inside["has_active_period"])
        self.assertEqual(inside["current_period"].mes, "Marzo")
        self.assertEqual(inside["period_stats"], {"total_votes": 0, "total_candidates": 1})
        self.assertFalse(outside["has_active_period"])
        self.assertEqual(outside["total_active_periods"], 1)
        self.assertEqual(outside["valid_active_periods"], 0)


class PeriodAPITest(APITestCase):
    def setUp(self):
        self.admin = get_user_model().objects.create_user(
            username="admin", password="empathy2024", is_staff=True
        )
        self.url = reverse("periods:period-list")

    def _payload(self, **overrides):
        data = {
            "mes": "Marzo",
            "ano": "2025",
            "active": True,
            "start_date": MARCH_START.isoformat(),
            "end_date": MARCH_END.isoformat(),
        }
        data.update(overrides)
        return data

    def test_admin_creates_period(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(self.url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["mes"], "Marzo")
        self.assertTrue(response.data["data"]["active"])

    def test_anonymous_cannot_create_period(self):
        response = self.client.post(self.url, self._payload(), format="json")

        self.assertIn(
            response.status_code,
            (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN),
        )
        self.assertFalse(VotingPeriod.objects.exists())

    def test_duplicate_period_returns_conflict(self):
        self.client.force_authenticate(self.admin)
        self.client.post(self.url, self._payload(), format="json")

        response = self.client.post(self.url, self._payload(active=False), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error_kind"], "DuplicatePeriod")

    def test_invalid_date_range(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.url,
            self._payload(start_date=MARCH_END.isoformat(), end_date=MARCH_START.isoformat()),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_kind"], "InvalidDateRange")

    # "2025-04-30" would otherwise close voting at midnight of the last day
    def test_dates_must_be_full_instants(self):
        self.client.force_authenticate(self.admin)

        for start_date, end_date in [
            ("2025-04-01", "2025-04-30"),
            ("2025-04-01T00:00:00", "2025-04-30T23:59:59"),
            (APRIL_START.isoformat(), "2025-04-30"),
            (APRIL_START.isoformat(), "2025-02-30T10:00:00Z"),
        ]:
            with self.subTest(start_date=start_date, end_date=end_date):
                response = self.client.post(
                    self.url,
                    self._payload(mes="Abril", start_date=start_date, end_date=end_date),
                    format="json",
                )

                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn("end_date", response.data)

        self.assertFalse(VotingPeriod.objects.exists())

    def test_zulu_and_offset_instants_are_accepted(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.url,
            self._payload(
                mes="Abril",
                start_date="2025-04-01T03:00:00Z",
                end_date="2025-04-30T23:59:59-03:00",
            ),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        period = VotingPeriod.objects.get()
        self.assertEqual(period.start_date, datetime(2025, 4, 1, 3, tzinfo=dt_timezone.utc))
        self.assertEqual(
            period.end_date, datetime(2025, 5, 1, 2, 59, 59, tzinfo=dt_timezone.utc)
        )

    def test_invalid_month_and_year(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.url, self._payload(mes="Marzzo", ano="25"), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("mes", response.data)
        self.assertIn("ano", response.data)

    def test_toggle_period(self):
        registry = PeriodRegistry()
        march = registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        april = registry.create_period("Abril", "2025", False, APRIL_START, APRIL_END)
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            reverse("periods:period-toggle", args=[april.id]), {"active": True}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["active"])
        march.refresh_from_db()
        self.assertFalse(march.active)

    def test_toggle_unknown_period(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            reverse("periods:period-toggle", args=[uuid.uuid4()]), {"active": True}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error_kind"], "PeriodNotFound")

    def test_list_filters_by_active(self):
        registry = PeriodRegistry()
        registry.create_period("Marzo", "2025", True, MARCH_START, MARCH_END)
        registry.create_period("Abril", "2025", False, APRIL_START, APRIL_END)

        response = self.client.get(self.url, {"active": "false"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["data"][0]["mes"], "Abril")
        self.assertEqual(response.data["data"][0]["stats"]["total_votes"], 0)

        response = self.client.get(self.url)
        self.assertEqual(response.data["count"], 2)

    def test_status_endpoint(self):
        now = timezone.now()
        PeriodRegistry().create_period(
            "Marzo", "2025", True, now - timedelta(days=1), now + timedelta(days=1)
        )

        response = self.client.get(reverse("periods:period-status"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["has_active_period"])
        self.assertEqual(response.data["data"]["current_period"]["mes"], "Marzo")
