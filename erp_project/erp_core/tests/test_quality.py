import datetime

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..models import CAPA, CapaTask, NonConformanceReport
from ..services import quality
from .factories import TestDataFactory


class NcrTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.user = self.f.member("inspector", role="accountant")

    def make_ncr(self, **kwargs):
        kwargs.setdefault("title", "Scratched housings")
        kwargs.setdefault("description", "12 units scratched on arrival")
        kwargs.setdefault("source", "receiving_inspection")
        kwargs.setdefault("detected_date", datetime.date(2025, 9, 3))
        return NonConformanceReport.objects.create(organization=self.org, **kwargs)

    def test_ncr_number_format(self):
        ncr = self.make_ncr()
        self.assertEqual(ncr.ncr_number, "NCR-2025-00001")
        self.assertEqual(ncr.status, "open")

    def test_close_stamps_closer(self):
        ncr = quality.update_ncr(self.make_ncr(), self.user, {"status": "closed"})
        self.assertEqual(ncr.status, "closed")
        self.assertEqual(ncr.closed_by, self.user)
        self.assertIsNotNone(ncr.closed_at)

    def test_closed_ncr_cannot_change(self):
        ncr = quality.update_ncr(self.make_ncr(), self.user, {"status": "closed"})
        with self.assertRaises(ValidationError):
            quality.update_ncr(ncr, self.user, {"notes": "reopen please"})

    def test_only_open_ncr_deleted(self):
        ncr = quality.update_ncr(self.make_ncr(), self.user, {"status": "investigating"})
        with self.assertRaises(ValidationError):
            quality.delete_ncr(ncr, self.user)
        fresh = self.make_ncr(title="Bent pins")
        quality.delete_ncr(fresh, self.user)
        self.assertFalse(NonConformanceReport.objects.filter(pk=fresh.pk).exists())

    def test_convert_to_capa_once(self):
        ncr = self.make_ncr(severity="critical")
        capa = quality.convert_ncr_to_capa(ncr, self.user)
        ncr.refresh_from_db()
        self.assertEqual(capa.ncr, ncr)
        self.assertEqual(capa.source, "ncr")
        self.assertEqual(capa.priority, "critical")
        self.assertEqual(capa.title, ncr.title)
        self.assertEqual(ncr.status, "corrective_action")
        with self.assertRaises(ValidationError):
            quality.convert_ncr_to_capa(ncr, self.user)

    def test_overrides_win_over_ncr_values(self):
        capa = quality.convert_ncr_to_capa(self.make_ncr(), self.user, title="Fix packaging", priority="low")
        self.assertEqual(capa.title, "Fix packaging")
        self.assertEqual(capa.priority, "low")

    def test_ncr_with_capa_cannot_be_deleted(self):
        ncr = self.make_ncr()
        quality.convert_ncr_to_capa(ncr, self.user)
        with self.assertRaises(ValidationError):
            ncr.delete()


class CapaTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.user = self.f.member("qa", role="accountant")
        self.capa = CAPA.objects.create(
            organization=self.org, title="Supplier audit", description="Annual supplier audit",
            capa_type="preventive", source="audit",
        )

    def walk(self, *statuses):
        capa = self.capa
        for status in statuses:
            capa = quality.update_capa(capa, self.user, {"status": status})
        return capa

    def test_full_lifecycle_stamps_verifier_and_closer(self):
        capa = self.walk("in_progress", "implemented", "verifying", "verified", "closed")
        self.assertEqual(capa.status, "closed")
        self.assertEqual(capa.verified_by, self.user)
        self.assertEqual(capa.closed_by, self.user)
        self.assertIsNotNone(capa.closure_date)

    def test_failed_verification_goes_back(self):
        capa = self.walk("in_progress", "implemented", "verifying", "in_progress")
        self.assertEqual(capa.status, "in_progress")

    def test_skipping_states_rejected(self):
        with self.assertRaises(ValidationError):
            self.walk("closed")

    def test_closed_capa_is_locked(self):
        capa = self.walk("in_progress", "implemented", "verifying", "verified", "closed")
        with self.assertRaises(ValidationError):
            quality.update_capa(capa, self.user, {"title": "late edit"})

    def test_delete_only_open_or_cancelled(self):
        capa = self.walk("in_progress")
        with self.assertRaises(ValidationError):
            quality.delete_capa(capa, self.user)
        capa = quality.update_capa(capa, self.user, {"status": "cancelled"})
        quality.delete_capa(capa, self.user)
        self.assertFalse(CAPA.objects.filter(pk=capa.pk).exists())

    def test_task_numbers_and_completion(self):
        first = quality.save_capa_task(CapaTask(), self.user, {"capa": self.capa, "title": "Audit"})
        second = quality.save_capa_task(CapaTask(), self.user, {"capa": self.capa, "title": "Report"})
        self.assertEqual(first.task_number, f"{self.capa.capa_number}-T01")
        self.assertEqual(second.task_number, f"{self.capa.capa_number}-T02")
        first = quality.save_capa_task(first, self.user, {"status": "completed"})
        self.assertIsNotNone(first.completed_at)
        first = quality.save_capa_task(first, self.user, {"status": "in_progress"})
        self.assertIsNone(first.completed_at)

    def test_statistics(self):
        CAPA.objects.create(
            organization=self.org, title="Late", description="Overdue action",
            capa_type="corrective", source="other",
            priority="critical", due_date=datetime.date(2020, 1, 1),
        )
        stats = quality.capa_statistics(CAPA.objects.for_organization(self.org))
        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["open"], 2)
        self.assertEqual(stats["overdue"], 1)
        self.assertEqual(stats["critical"], 1)
        self.assertEqual(stats["by_source"]["audit"], 1)
