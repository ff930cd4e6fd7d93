import uuid
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from unittest import mock

from django.core.cache import cache
from django.db import OperationalError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from candidates.models import Candidate
from periods.services import PeriodRegistry

from .models import Vote
from .services import (
    CandidateInactiveError,
    CandidateMismatchError,
    CandidateNotFoundError,
    DuplicateVoteError,
    EligibilityReason,
    PeriodEndedError,
    PeriodNotActiveError,
    PeriodNotStartedError,
    VotingService,
)

MARCH_START = datetime(2025, 3, 1, tzinfo=dt_timezone.utc)
MARCH_END = datetime(2025, 3, 31, tzinfo=dt_timezone.utc)
MID_MARCH = datetime(2025, 3, 15, tzinfo=dt_timezone.utc)
ONE_TICK = timedelta(microseconds=1)


class VotingTestMixin:
    def setUp(self):
        cache.clear()
        self.registry = PeriodRegistry()
        self.period = self.registry.create_period(
            "Marzo", "2025", True, MARCH_START, MARCH_END
        )
        self.juan = Candidate.objects.create(
            nombre="Juan", apellido="Pérez", grado="1ro", curso="Arrayan"
        )
        self.maria = Candidate.objects.create(
            nombre="María", apellido="González", grado="1ro", curso="Arrayan"
        )
        self.carlos = Candidate.objects.create(
            nombre="Carlos", apellido="Rodríguez", grado="2do", curso="Jacarandá"
        )
        self.service = VotingService()


class EligibilityTest(VotingTestMixin, TestCase):
    # period active and date inside the window
    def test_can_vote(self):
        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        self.assertTrue(result.can_vote)
        self.assertFalse(result.has_voted)
        self.assertIsNone(result.reason)
        self.assertEqual(result.period["mes"], "Marzo")

    def test_period_not_active(self):
        self.registry.set_active(self.period.id, False)

        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        self.assertFalse(result.can_vote)
        self.assertEqual(result.reason, EligibilityReason.PERIOD_NOT_ACTIVE)

    def test_other_month_is_not_active(self):
        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Abril", "2025", now=MID_MARCH
        )

        self.assertEqual(result.reason, EligibilityReason.PERIOD_NOT_ACTIVE)

    def test_period_not_started(self):
        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MARCH_START - ONE_TICK
        )

        self.assertFalse(result.can_vote)
        self.assertEqual(result.reason, EligibilityReason.PERIOD_NOT_STARTED)
        self.assertIn(timezone.localtime(MARCH_START).strftime("%d/%m/%Y"), result.message)
        self.assertEqual(result.period["start_date"], MARCH_START.isoformat())

    def test_period_ended(self):
        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MARCH_END + ONE_TICK
        )

        self.assertFalse(result.can_vote)
        self.assertEqual(result.reason, EligibilityReason.PERIOD_ENDED)

    # both ends of the window are inclusive
    def test_window_boundaries(self):
        for now in (MARCH_START, MARCH_END):
            result = self.service.check_eligibility(
                "1ro", "Arrayan", "Marzo", "2025", now=now
            )
            self.assertTrue(result.can_vote, now)

    def test_already_voted(self):
        self.service.record_vote(
            self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        self.assertFalse(result.can_vote)
        self.assertTrue(result.has_voted)
        self.assertEqual(result.reason, EligibilityReason.ALREADY_VOTED)
        self.assertEqual(result.existing_vote["candidate"]["nombre"], "Juan")

    def test_other_section_still_can_vote(self):
        self.service.record_vote(
            self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        result = self.service.check_eligibility(
            "2do", "Jacarandá", "Marzo", "2025", now=MID_MARCH
        )

        self.assertTrue(result.can_vote)

    def test_check_is_idempotent(self):
        first = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )
        second = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        self.assertEqual(first, second)
        self.assertFalse(Vote.objects.exists())

    def test_as_dict_uses_reason_codes(self):
        result = self.service.check_eligibility(
            "1ro", "Arrayan", "Marzo", "2025", now=MARCH_END + ONE_TICK
        )

        self.assertEqual(result.as_dict()["reason"], "PERIOD_ENDED")


class RecordVoteTest(VotingTestMixin, TestCase):
    def test_vote_once_then_duplicate(self):
        vote = self.service.record_vote(
            self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        self.assertEqual(vote["candidate"]["nombre"], "Juan")
        self.assertEqual(vote["period"], "Marzo 2025")
        self.assertIsNotNone(vote["timestamp"])

        with self.assertRaises(DuplicateVoteError) as ctx:
            self.service.record_vote(
                self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

        self.assertEqual(
            ctx.exception.details["existing_vote"]["candidate"]["apellido"], "Pérez"
        )
        self.assertEqual(Vote.objects.count(), 1)

    # the section votes once even if the second ballot names another candidate
    def test_duplicate_for_other_candidate_same_section(self):
        self.service.record_vote(
            self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        with self.assertRaises(DuplicateVoteError):
            self.service.record_vote(
                self.maria.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

    # a submission that misses the pre-check still fails on the unique constraint
    def test_database_constraint_catches_duplicate(self):
        real_lookup = self.service._find_existing_vote
        calls = []

        def miss_first_lookup(*args):
            calls.append(args)
            if len(calls) == 1:
                return None
            return real_lookup(*args)

        self.service.record_vote(
            self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
        )

        with mock.patch.object(
            self.service, "_find_existing_vote", side_effect=miss_first_lookup
        ):
            with self.assertRaises(DuplicateVoteError):
                self.service.record_vote(
                    self.maria.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
                )

        self.assertEqual(len(calls), 2)
        self.assertEqual(Vote.objects.count(), 1)
        self.assertEqual(Vote.objects.get().candidate, self.juan)

    def test_candidate_mismatch(self):
        with self.assertRaises(CandidateMismatchError) as ctx:
            self.service.record_vote(
                self.carlos.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

        self.assertEqual(ctx.exception.error_kind, "CandidateMismatch")
        self.assertFalse(Vote.objects.exists())

    def test_candidate_mismatch_on_curso(self):
        with self.assertRaises(CandidateMismatchError):
            self.service.record_vote(
                self.juan.id, "1ro", "Ceibo", "Marzo", "2025", now=MID_MARCH
            )

    def test_candidate_inactive(self):
        self.juan.active = False
        self.juan.save()

        with self.assertRaises(CandidateInactiveError):
            self.service.record_vote(
                self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

    def test_candidate_not_found(self):
        with self.assertRaises(CandidateNotFoundError):
            self.service.record_vote(
                uuid.uuid4(), "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

    def test_period_gates(self):
        with self.assertRaises(PeriodNotStartedError):
            self.service.record_vote(
                self.juan.id, "1ro", "Arrayan", "Marzo", "2025",
                now=MARCH_START - ONE_TICK,
            )
        with self.assertRaises(PeriodEndedError):
            self.service.record_vote(
                self.juan.id, "1ro", "Arrayan", "Marzo", "2025",
                now=MARCH_END + ONE_TICK,
            )
        with self.assertRaises(PeriodNotActiveError):
            self.service.record_vote(
                self.juan.id, "1ro", "Arrayan", "Abril", "2025", now=MID_MARCH
            )

        self.assertFalse(Vote.objects.exists())

    def test_vote_at_end_boundary(self):
        self.service.record_vote(
            self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MARCH_END
        )

        self.assertEqual(Vote.objects.count(), 1)

    # the period gate is checked before the candidate
    def test_period_checked_before_candidate(self):
        self.registry.set_active(self.period.id, False)

        with self.assertRaises(PeriodNotActiveError):
            self.service.record_vote(
                uuid.uuid4(), "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

    def test_storage_failure_propagates(self):
        with mock.patch.object(
            Vote.objects, "create", side_effect=OperationalError("database is down")
        ):
            with self.assertRaises(OperationalError):
                self.service.record_vote(
                    self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
                )

    def test_results_cache_is_invalidated_by_new_vote(self):
        before = self.service.get_period_results("Marzo", "2025")
        self.assertEqual(before["total_votes"], 0)

        with self.captureOnCommitCallbacks(execute=True):
            self.service.record_vote(
                self.juan.id, "1ro", "Arrayan", "Marzo", "2025", now=MID_MARCH
            )

        after = self.service.get_period_results("Marzo", "2025")
        self.assertEqual(after["total_votes"], 1)
        self.assertEqual(after["winner"]["candidate"]["nombre"], "Juan")
        self.assertEqual(after["winner"]["percentage"], 100.0)


class PeriodResultsTest(VotingTestMixin, TestCase):
    def test_results_grouped_by_candidate(self):
        ana = Candidate.objects.create(
            nombre="Ana", apellido="Suárez", grado="1ro", curso="Ceibo"
        )
        Vote.objects.create(candidate=self.juan, grado="1ro", curso="Arrayan", mes="Marzo", ano="2025")
        Vote.objects.create(candidate=ana, grado="1ro", curso="Ceibo", mes="Marzo", ano="2025")
        Vote.objects.create(candidate=self.carlos, grado="2do", curso="Jacarandá", mes="Marzo", ano="2025")
        Vote.objects.create(candidate=self.juan, grado="1ro", curso="Arrayan", mes="Abril", ano="2025")

        results = self.service.get_period_results("Marzo", "2025", use_cache=False)

        self.assertEqual(results["total_votes"], 3)
        self.assertEqual(results["total_candidates"], 3)
        self.assertEqual(
            sorted(c["candidate"]["nombre"] for c in results["candidates"]),
            ["Ana", "Carlos", "Juan"],
        )
        self.assertAlmostEqual(results["candidates"][0]["percentage"], 33.33)

        first_grade = self.service.get_period_results("Marzo", "2025", grado="1ro", use_cache=False)
        self.assertEqual(first_grade["total_votes"], 2)


class VotingAPITest(APITestCase):
    def setUp(self):
        cache.clear()
        now = timezone.now()
        PeriodRegistry().create_period(
            "Marzo", "2025", True, now - timedelta(days=1), now + timedelta(days=1)
        )
        self.juan = Candidate.objects.create(
            nombre="Juan", apellido="Pérez", grado="1ro", curso="Arrayan"
        )
        self.payload = {
            "candidate_id": str(self.juan.id),
            "grado": "1ro",
            "curso": "Arrayan",
            "mes": "Marzo",
            "ano": "2025",
        }

    def test_record_vote(self):
        response = self.client.post(reverse("voting:votes"), self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["candidate"]["nombre"], "Juan")
        self.assertEqual(response.data["data"]["grado"], "1ro")

    def test_duplicate_vote_returns_conflict(self):
        self.client.post(reverse("voting:votes"), self.payload, format="json")

        response = self.client.post(reverse("voting:votes"), self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error_kind"], "DuplicateVote")
        self.assertIn("existing_vote", response.data["details"])

    def test_invalid_input_reports_fields(self):
        payload = dict(self.payload, grado="7mo", ano="25")

        response = self.client.post(reverse("voting:votes"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("grado", response.data)
        self.assertIn("ano", response.data)

    def test_period_not_active_is_forbidden(self):
        payload = dict(self.payload, mes="Abril")

        response = self.client.post(reverse("voting:votes"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error_kind"], "PeriodNotActive")

    def test_candidate_not_found(self):
        payload = dict(self.payload, candidate_id=str(uuid.uuid4()))

        response = self.client.post(reverse("voting:votes"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error_kind"], "CandidateNotFound")

    # ids that are not UUIDs cannot match any candidate
    def test_malformed_candidate_id_is_not_found(self):
        payload = dict(self.payload, candidate_id="clx123abc")

        response = self.client.post(reverse("voting:votes"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error_kind"], "CandidateNotFound")
        self.assertEqual(response.data["details"]["candidate_id"], "clx123abc")
        self.assertFalse(Vote.objects.exists())

    def test_storage_failure_is_internal_error(self):
        with mock.patch("voting.views.get_voting_service") as get_service:
            get_service.return_value.record_vote.side_effect = OperationalError("down")
            response = self.client.post(reverse("voting:votes"), self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["error_kind"], "InternalError")

    def test_eligibility_endpoint(self):
        query = {"grado": "1ro", "curso": "Arrayan", "mes": "Marzo", "ano": "2025"}

        response = self.client.get(reverse("voting:eligibility"), query)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["can_vote"])

        self.client.post(reverse("voting:votes"), self.payload, format="json")

        response = self.client.get(reverse("voting:eligibility"), query)
        self.assertFalse(response.data["data"]["can_vote"])
        self.assertTrue(response.data["data"]["has_voted"])
        self.assertEqual(response.data["data"]["reason"], "ALREADY_VOTED")

    def test_eligibility_requires_all_fields(self):
        response = self.client.get(reverse("voting:eligibility"), {"grado": "1ro"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("curso", response.data)

    def test_list_votes_and_results(self):
        self.client.post(reverse("voting:votes"), self.payload, format="json")

        votes = self.client.get(reverse("voting:votes"), {"mes": "Marzo", "ano": "2025"})
        self.assertEqual(votes.status_code, status.HTTP_200_OK)
        self.assertEqual(votes.data["count"], 1)
        self.assertEqual(votes.data["data"][0]["candidate"]["apellido"], "Pérez")

        results = self.client.get(reverse("voting:results"), {"mes": "Marzo", "ano": "2025"})
        self.assertEqual(results.status_code, status.HTTP_200_OK)
        self.assertEqual(results.data["data"]["total_votes"], 1)
