import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..models import ServiceBooking, ServiceDelivery
from ..services import service_management as service_ops
from .factories import TestDataFactory


class ServiceWorkflowTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.user = self.f.member("tech", role="accountant")
        self.customer = self.f.customer()
        self.service = self.f.service(standard_duration_hours=Decimal("4.00"), auto_scheduling=True)

    def book(self, service=None, **extra):
        data = {
            "service": service or self.service,
            "customer": self.customer,
            "requested_date": datetime.date(2025, 9, 10),
        }
        data.update(extra)
        return service_ops.create_booking(self.org, self.user, data)

    def test_hourly_quote_from_estimated_hours(self):
        booking = self.book(estimated_hours=Decimal("3"))
        self.assertEqual(booking.status, "requested")
        self.assertEqual(booking.quoted_price, Decimal("150.00"))
        self.assertTrue(booking.booking_number.startswith("BK"))

    def test_fixed_price_service_quotes_standard_rate(self):
        fixed = self.f.service(code="SVC-FIX", pricing_model="fixed", standard_rate=Decimal("499.00"))
        self.assertEqual(self.book(service=fixed).quoted_price, Decimal("499.00"))

    def test_inactive_service_cannot_be_booked(self):
        self.service.is_active = False
        self.service.save()
        with self.assertRaises(ValidationError):
            self.book()

    def test_approve_creates_planned_delivery_for_auto_scheduling(self):
        booking = service_ops.approve_booking(self.book(estimated_hours=Decimal("2")), self.user)
        self.assertEqual(booking.status, "confirmed")
        self.assertEqual(booking.approved_by, self.user)
        self.assertEqual(booking.approved_price, Decimal("100.00"))
        delivery = ServiceDelivery.objects.get(booking=booking)
        self.assertEqual(delivery.status, "planned")
        self.assertEqual(delivery.estimated_hours, Decimal("2.00"))

    def test_approve_without_auto_scheduling(self):
        manual = self.f.service(code="SVC-2", auto_scheduling=False)
        service_ops.approve_booking(self.book(service=manual), self.user)
        self.assertFalse(ServiceDelivery.objects.exists())

    def test_cannot_approve_twice_or_cancel_completed(self):
        booking = service_ops.approve_booking(self.book(), self.user)
        with self.assertRaises(ValidationError):
            service_ops.approve_booking(booking, self.user)
        ServiceBooking.objects.filter(pk=booking.pk).update(status="completed")
        with self.assertRaises(ValidationError):
            service_ops.cancel_booking(booking, self.user)

    def test_cancel_keeps_reason(self):
        booking = service_ops.cancel_booking(self.book(), self.user, reason="Customer postponed")
        self.assertEqual(booking.status, "cancelled")
        self.assertIn("Customer postponed", booking.notes)

    def test_delivery_lifecycle_with_time_entries(self):
        booking = service_ops.approve_booking(self.book(), self.user)
        delivery = ServiceDelivery.objects.get(booking=booking)

        delivery = service_ops.start_delivery(delivery, self.user)
        self.assertEqual(delivery.status, "in_progress")
        self.assertIsNotNone(delivery.actual_start)

        entry = service_ops.log_time(delivery, self.user, {"duration_hours": Decimal("1.50")})
        self.assertEqual(entry.hourly_rate, Decimal("50.00"))
        self.assertEqual(entry.total_amount, Decimal("75.00"))
        service_ops.log_time(
            delivery, self.user, {"duration_hours": Decimal("0.50"), "is_billable": False}
        )
        delivery.refresh_from_db()
        self.assertEqual(delivery.actual_hours, Decimal("2.00"))

        delivery = service_ops.complete_delivery(delivery, self.user, notes="All done")
        booking.refresh_from_db()
        self.assertEqual(delivery.status, "completed")
        self.assertEqual(delivery.progress, 100)
        self.assertEqual(booking.status, "completed")

        with self.assertRaises(ValidationError):
            service_ops.log_time(delivery, self.user, {"duration_hours": Decimal("1")})

    def test_cannot_complete_planned_delivery(self):
        delivery = service_ops.create_delivery(
            self.org, self.user, {"service": self.service, "customer": self.customer}
        )
        with self.assertRaises(ValidationError):
            service_ops.complete_delivery(delivery, self.user)

    def test_delivery_from_booking_inherits_service_and_customer(self):
        booking = self.book()
        delivery = service_ops.create_delivery(self.org, self.user, {"booking": booking})
        self.assertEqual(delivery.service, self.service)
        self.assertEqual(delivery.customer, self.customer)

    def test_metrics(self):
        delivery = service_ops.create_delivery(
            self.org, self.user, {"service": self.service, "customer": self.customer}
        )
        delivery = service_ops.start_delivery(delivery, self.user)
        service_ops.log_time(delivery, self.user, {"duration_hours": Decimal("3")})
        metrics = service_ops.service_metrics(self.org)
        self.assertEqual(metrics["total_services"], 1)
        self.assertEqual(metrics["active_deliveries"], 1)
        self.assertEqual(metrics["total_hours"], Decimal("3.00"))
        self.assertEqual(metrics["billable_amount"], Decimal("150.00"))
        self.assertEqual(metrics["average_hours_per_user"], Decimal("3.00"))
