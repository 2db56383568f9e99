import datetime
from decimal import Decimal

from django.test import TestCase

from ..exceptions import InvalidInput, InvalidState, NotFound
from ..models import AuditLog, Client, Invoice, PaymentReceived
from ..services.clients import get_client_balance
from ..services.invoicing import (cancel_invoice, client_invoice_history,
                                  create_invoice, delete_invoice,
                                  update_invoice)
from ..services.instant import instant_invoice
from ..services.payment import delete_payment, receive_payment, update_payment
from .factories import item, make_client


class CarryForwardTests(TestCase):
    def setUp(self):
        self.client_obj = make_client()

    def test_first_invoice_has_no_previous_balance(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])

        self.assertEqual(inv.invoice_number, "INV_001")
        self.assertEqual(inv.previous_balance, Decimal("0.00"))
        self.assertIsNone(inv.previous_invoice)
        self.assertEqual(inv.total_amount, Decimal("100.00"))
        self.assertEqual(inv.balance_due, Decimal("100.00"))
        self.assertEqual(inv.status, "UNPAID")

    def test_new_invoice_carries_outstanding_balance(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        inv2 = create_invoice(self.client_obj.pk, [item(50)])

        self.assertEqual(inv2.previous_balance, Decimal("100.00"))
        self.assertEqual(inv2.previous_invoice, inv1)
        self.assertEqual(inv2.total_amount, Decimal("150.00"))

    def test_chained_balances_are_counted_once(self):
        create_invoice(self.client_obj.pk, [item(100)])
        create_invoice(self.client_obj.pk, [item(50)])
        inv3 = create_invoice(self.client_obj.pk, [item(20)])

        # inv1 is already inside inv2, only inv2's balance is carried
        self.assertEqual(inv3.previous_balance, Decimal("150.00"))
        self.assertEqual(inv3.total_amount, Decimal("170.00"))
        self.assertEqual(
            get_client_balance(self.client_obj.pk)["pending_balance"],
            Decimal("170.00"),
        )

    def test_paid_invoice_is_not_carried(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        receive_payment(self.client_obj.pk, "100", invoice_id=inv1.pk)

        inv2 = create_invoice(self.client_obj.pk, [item(30)])
        self.assertEqual(inv2.previous_balance, Decimal("0.00"))
        self.assertIsNone(inv2.previous_invoice)

    def test_items_are_priced_by_area(self):
        inv = create_invoice(
            self.client_obj.pk,
            [{"name": "Vinyl", "width": "2.5", "height": "3", "quantity": 2, "rate": "12.5"}],
        )
        line = inv.items.get()
        self.assertEqual(line.sqf, Decimal("15.00"))
        self.assertEqual(line.amount, Decimal("187.50"))
        self.assertEqual(inv.subtotal, Decimal("187.50"))

    def test_create_writes_audit_record(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        inv2 = create_invoice(self.client_obj.pk, [item(40)])

        log = AuditLog.objects.get(entity_type="INVOICE", entity_id=str(inv2.pk))
        self.assertEqual(log.action, "CREATE")
        self.assertEqual(log.details["previousBalance"], "100.00")
        self.assertEqual(log.details["previousInvoice"], inv1.invoice_number)
        self.assertEqual(log.details["itemsCount"], 1)


class InvoiceValidationTests(TestCase):
    def setUp(self):
        self.client_obj = make_client()

    def test_requires_items(self):
        with self.assertRaises(InvalidInput):
            create_invoice(self.client_obj.pk, [])

    def test_rejects_non_positive_dimensions(self):
        for field in ("width", "height", "rate", "quantity"):
            raw = {"item_name": "Sign", "width": 2, "height": 2, "rate": 5, "quantity": 1}
            raw[field] = 0
            with self.assertRaises(InvalidInput):
                create_invoice(self.client_obj.pk, [raw])
        self.assertEqual(Invoice.objects.count(), 0)

    def test_unknown_or_inactive_client(self):
        with self.assertRaises(NotFound):
            create_invoice(999999, [item(10)])

        self.client_obj.is_active = False
        self.client_obj.save()
        with self.assertRaises(NotFound):
            create_invoice(self.client_obj.pk, [item(10)])


class DiscountTests(TestCase):
    def test_membership_percentage_discount(self):
        member = make_client(membership_type="PERCENTAGE", membership_discount=Decimal("10"))
        inv = create_invoice(member.pk, [item(100)])

        self.assertEqual(inv.discount, Decimal("10.00"))
        self.assertEqual(inv.total_amount, Decimal("90.00"))

    def test_manual_discount_applies_before_membership(self):
        member = make_client(membership_type="PERCENTAGE", membership_discount=Decimal("10"))
        inv = create_invoice(
            member.pk, [item(100)], discount={"type": "fixed", "value": 20}
        )
        # 20 manual, then 10% of the remaining 80
        self.assertEqual(inv.discount, Decimal("28.00"))
        self.assertEqual(inv.total_amount, Decimal("72.00"))

    def test_fixed_discount_is_capped_at_subtotal(self):
        client_obj = make_client()
        inv = create_invoice(
            client_obj.pk, [item(50)], discount={"type": "fixed", "value": 80}
        )
        self.assertEqual(inv.discount, Decimal("50.00"))
        self.assertEqual(inv.status, "PAID")

    def test_expired_membership_is_ignored(self):
        member = make_client(
            membership_type="FIXED",
            membership_discount=Decimal("15"),
            membership_end=datetime.date(2000, 1, 1),
        )
        inv = create_invoice(member.pk, [item(100)])
        self.assertEqual(inv.discount, Decimal("0.00"))

    def test_bad_discount_type(self):
        client_obj = make_client()
        with self.assertRaises(InvalidInput):
            create_invoice(client_obj.pk, [item(10)], discount={"type": "bogus", "value": 1})


class CancelInvoiceTests(TestCase):
    def setUp(self):
        self.client_obj = make_client()

    def test_cancelled_invoice_excluded_from_balances(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        inv2 = create_invoice(self.client_obj.pk, [item(50)])

        cancel_invoice(inv1.pk)

        inv1.refresh_from_db()
        inv2.refresh_from_db()
        self.assertEqual(inv1.status, "CANCELLED")
        # what inv2 carried from inv1 is no longer owed
        self.assertEqual(inv2.previous_balance, Decimal("0.00"))
        self.assertEqual(inv2.balance_due, Decimal("50.00"))
        self.assertEqual(
            get_client_balance(self.client_obj.pk)["pending_balance"], Decimal("50.00")
        )

        inv3 = create_invoice(self.client_obj.pk, [item(20)])
        self.assertEqual(inv3.previous_balance, Decimal("50.00"))
        self.assertEqual(inv3.previous_invoice, inv2)

    def test_cancel_is_terminal(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])
        cancel_invoice(inv.pk)
        with self.assertRaises(InvalidState):
            cancel_invoice(inv.pk)

        log = AuditLog.objects.filter(entity_id=str(inv.pk), action="STATUS_CHANGE").get()
        self.assertEqual(log.details["to"], "CANCELLED")

    def test_cancelled_invoice_rejects_targeted_payment(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])
        cancel_invoice(inv.pk)
        with self.assertRaises(InvalidState):
            receive_payment(self.client_obj.pk, "10", invoice_id=inv.pk)
        self.assertEqual(PaymentReceived.objects.count(), 0)


class InvoiceMaintenanceTests(TestCase):
    def setUp(self):
        self.client_obj = make_client()

    def test_update_replaces_items(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])
        inv = update_invoice(inv.pk, items=[item(30), item(20, "Stickers")], notes="rush")

        inv.refresh_from_db()
        self.assertEqual(inv.subtotal, Decimal("50.00"))
        self.assertEqual(inv.balance_due, Decimal("50.00"))
        self.assertEqual(inv.items.count(), 2)
        self.assertEqual(inv.notes, "rush")

    def test_update_refused_with_payments(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])
        receive_payment(self.client_obj.pk, "10")
        with self.assertRaises(InvalidState):
            update_invoice(inv.pk, items=[item(5)])

    def test_update_refused_when_balance_carried(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        create_invoice(self.client_obj.pk, [item(50)])
        with self.assertRaises(InvalidState):
            update_invoice(inv1.pk, items=[item(5)])

    def test_delete_without_payments(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])
        pk = inv.pk
        delete_invoice(pk)

        self.assertFalse(Invoice.objects.filter(pk=pk).exists())
        self.assertTrue(
            AuditLog.objects.filter(entity_id=str(pk), action="DELETE").exists()
        )

    def test_delete_refused_with_payments(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])
        receive_payment(self.client_obj.pk, "10")
        with self.assertRaises(InvalidState):
            delete_invoice(inv.pk)
        self.assertTrue(Invoice.objects.filter(pk=inv.pk).exists())

    def test_history_is_newest_first(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        inv2 = create_invoice(self.client_obj.pk, [item(50)])
        history = client_invoice_history(self.client_obj.pk)
        self.assertEqual([inv.pk for inv in history], [inv2.pk, inv1.pk])

        with self.assertRaises(NotFound):
            client_invoice_history(999999)


class CreditSpendingTests(TestCase):
    def setUp(self):
        self.client_obj = make_client(credit_balance=Decimal("60.00"))

    def credit_payment(self):
        return PaymentReceived.objects.get(payment_method="CREDIT")

    def test_credit_untouched_unless_asked(self):
        inv = create_invoice(self.client_obj.pk, [item(100)])

        self.client_obj.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("0.00"))
        self.assertEqual(self.client_obj.credit_balance, Decimal("60.00"))

    def test_credit_pays_part_of_new_invoice(self):
        inv = create_invoice(self.client_obj.pk, [item(100)], apply_credit=True)
        inv.refresh_from_db()
        self.client_obj.refresh_from_db()

        self.assertEqual(inv.paid_amount, Decimal("60.00"))
        self.assertEqual(inv.balance_due, Decimal("40.00"))
        self.assertEqual(inv.status, "PARTIAL")
        self.assertEqual(self.client_obj.credit_balance, Decimal("0.00"))

        voucher = self.credit_payment()
        self.assertEqual(voucher.receipt_number, "V_001")
        self.assertEqual(voucher.amount, Decimal("60.00"))
        self.assertEqual(
            list(voucher.allocations.values_list("kind", "amount")),
            [("APPLIED", Decimal("60.00"))],
        )
        self.assertTrue(
            AuditLog.objects.filter(
                entity_id=str(voucher.pk), action="CREDIT_APPLIED"
            ).exists()
        )

    def test_leftover_credit_stays_with_client(self):
        inv = create_invoice(self.client_obj.pk, [item(50)], apply_credit=True)
        inv.refresh_from_db()
        self.client_obj.refresh_from_db()

        self.assertEqual(inv.status, "PAID")
        self.assertEqual(self.client_obj.credit_balance, Decimal("10.00"))

    def test_credit_reaches_carried_invoice(self):
        inv1 = create_invoice(self.client_obj.pk, [item(100)])
        self.client_obj.credit_balance = Decimal("120.00")
        self.client_obj.save()

        # 150 owed: inv2's own 50 first, then 70 of the carried 100
        inv2 = create_invoice(self.client_obj.pk, [item(50)], apply_credit=True)
        inv1.refresh_from_db()
        inv2.refresh_from_db()

        self.assertEqual(inv2.paid_amount, Decimal("50.00"))
        self.assertEqual(inv1.paid_amount, Decimal("70.00"))
        self.assertEqual(inv2.previous_balance, Decimal("30.00"))
        self.assertEqual(
            get_client_balance(self.client_obj.pk),
            {"pending_balance": Decimal("30.00"), "credit_balance": Decimal("0.00")},
        )

    def test_deleting_credit_payment_gives_credit_back(self):
        inv = create_invoice(self.client_obj.pk, [item(100)], apply_credit=True)
        delete_payment(self.credit_payment().pk)

        inv.refresh_from_db()
        self.client_obj.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("0.00"))
        self.assertEqual(inv.status, "UNPAID")
        self.assertEqual(self.client_obj.credit_balance, Decimal("60.00"))

    def test_receipt_whose_credit_was_spent_cannot_be_deleted(self):
        other = make_client(name="Bilal Signs", phone="03110000000")
        overpaid = receive_payment(other.pk, "40")
        create_invoice(other.pk, [item(100)], apply_credit=True)

        with self.assertRaises(InvalidState):
            delete_payment(overpaid.payment.pk)

    def test_credit_payment_method_is_fixed(self):
        create_invoice(self.client_obj.pk, [item(100)], apply_credit=True)
        voucher = self.credit_payment()

        with self.assertRaises(InvalidInput):
            update_payment(voucher.pk, method="CASH")
        with self.assertRaises(InvalidInput):
            receive_payment(self.client_obj.pk, "10", method="CREDIT")
        # non-financial fields can still be edited
        update_payment(voucher.pk, notes="applied at counter")


class InstantInvoiceTests(TestCase):
    def test_registers_client_and_takes_payment(self):
        result = instant_invoice(
            [item(100)], name="Walk-in", phone="0345-1112223",
            payment={"amount": "130", "method": "cash"},
        )
        result.invoice.refresh_from_db()

        self.assertTrue(result.client_created)
        self.assertEqual(result.client.phone, "03451112223")
        self.assertEqual(result.invoice.status, "PAID")
        self.assertEqual(result.payment.receipt_number, "REC_001")
        self.assertEqual(result.payment.payment.invoice, result.invoice)
        self.assertEqual(result.payment.credit_added, Decimal("30.00"))
        self.assertEqual(result.client.credit_balance, Decimal("30.00"))

    def test_reuses_client_by_phone_and_spends_credit(self):
        existing = make_client(credit_balance=Decimal("25.00"))

        result = instant_invoice([item(100)], name="Ali", phone="0300-1234567")

        self.assertFalse(result.client_created)
        self.assertEqual(result.client.pk, existing.pk)
        self.assertEqual(result.credit_used, Decimal("25.00"))
        self.assertEqual(result.invoice.balance_due, Decimal("75.00"))
        self.assertEqual(result.client.credit_balance, Decimal("0.00"))
        self.assertIsNone(result.payment)

    def test_payment_on_credit_covered_invoice_becomes_credit(self):
        existing = make_client(credit_balance=Decimal("200.00"))

        result = instant_invoice(
            [item(100)], client_id=existing.pk, payment={"amount": "50"}
        )

        self.assertEqual(result.credit_used, Decimal("100.00"))
        self.assertEqual(result.invoice.status, "PAID")
        self.assertIsNone(result.payment.payment.invoice)
        self.assertEqual(result.payment.credit_added, Decimal("50.00"))
        self.assertEqual(result.client.credit_balance, Decimal("150.00"))

    def test_failure_leaves_nothing_behind(self):
        with self.assertRaises(InvalidInput):
            instant_invoice([], name="New Client", phone="0399-0000001")
        with self.assertRaises(InvalidInput):
            instant_invoice(
                [item(10)], name="New Client", phone="0399-0000001",
                payment={"amount": "-5"},
            )

        self.assertFalse(Client.objects.filter(phone="03990000001").exists())
        self.assertEqual(Invoice.objects.count(), 0)
