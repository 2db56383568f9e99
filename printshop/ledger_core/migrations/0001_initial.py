import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_id", models.CharField(max_length=32, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("phone", models.CharField(max_length=32, unique=True)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                ("address", models.TextField(blank=True, null=True)),
                ("cnic", models.CharField(blank=True, max_length=32, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("credit_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("membership_type", models.CharField(blank=True, choices=[("FIXED", "Fixed amount"), ("PERCENTAGE", "Percentage")], max_length=10, null=True)),
                ("membership_discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("membership_start", models.DateField(blank=True, null=True)),
                ("membership_end", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["name"], name="client_name_idx"),
                    models.Index(fields=["is_active"], name="client_active_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("credit_balance__gte", 0)), name="client_credit_non_negative"),
                    models.CheckConstraint(condition=models.Q(("membership_discount__gte", 0)), name="client_membership_discount_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Sequence",
            fields=[
                ("kind", models.CharField(choices=[("CLIENT", "Client"), ("INVOICE", "Invoice"), ("RECEIPT", "Receipt"), ("VOUCHER", "Voucher")], max_length=10, primary_key=True, serialize=False)),
                ("value", models.PositiveBigIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entity_type", models.CharField(choices=[("CLIENT", "Client"), ("INVOICE", "Invoice"), ("PAYMENT", "Payment"), ("USER", "User")], max_length=10)),
                ("entity_id", models.CharField(max_length=100)),
                ("action", models.CharField(choices=[("CREATE", "Create"), ("UPDATE", "Update"), ("DELETE", "Delete"), ("PAYMENT_RECEIVED", "Payment received"), ("STATUS_CHANGE", "Status change"), ("ACTIVATE", "Activate"), ("DEACTIVATE", "Deactivate")], max_length=20)),
                ("details", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
                    models.Index(fields=["created_at"], name="audit_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=32, unique=True)),
                ("invoice_date", models.DateField(default=django.utils.timezone.localdate)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("previous_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("balance_due", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("status", models.CharField(choices=[("UNPAID", "Unpaid"), ("PARTIAL", "Partially paid"), ("PAID", "Paid"), ("CANCELLED", "Cancelled")], default="UNPAID", max_length=10)),
                ("balance_paid_from_future_invoice", models.BooleanField(default=False)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="ledger_core.client")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("previous_invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="next_invoices", to="ledger_core.invoice")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["client", "status"], name="inv_client_status_idx"),
                    models.Index(fields=["client", "created_at"], name="inv_client_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("subtotal__gte", 0), ("previous_balance__gte", 0), ("discount__gte", 0), ("paid_amount__gte", 0), ("balance_due__gte", 0)),
                        name="inv_non_negative_amounts",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("s_no", models.PositiveIntegerField(default=1)),
                ("item_name", models.CharField(max_length=200)),
                ("width", models.DecimalField(decimal_places=2, max_digits=12)),
                ("height", models.DecimalField(decimal_places=2, max_digits=12)),
                ("quantity", models.DecimalField(decimal_places=2, default=Decimal("1"), max_digits=12)),
                ("sqf", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("rate", models.DecimalField(decimal_places=2, max_digits=18)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="ledger_core.invoice")),
            ],
            options={
                "ordering": ("invoice", "s_no"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("width__gt", 0), ("height__gt", 0), ("quantity__gt", 0), ("rate__gt", 0)),
                        name="invitem_positive_dimensions",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentReceived",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("receipt_number", models.CharField(max_length=32, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("payment_method", models.CharField(choices=[("CASH", "Cash"), ("BANK", "Bank"), ("CHEQUE", "Cheque"), ("ONLINE", "Online")], default="CASH", max_length=10)),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("payment_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("credit_added", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.client")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments_received", to="ledger_core.invoice")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["client", "created_at"], name="payment_client_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                    models.CheckConstraint(condition=models.Q(("credit_added__gte", 0)), name="payment_credit_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("APPLIED", "Applied to invoice"), ("CARRY_RELEASE", "Carried balance released"), ("ANCESTOR_SETTLED", "Ancestor settled by later invoice")], default="APPLIED", max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("sequence", models.PositiveIntegerField(default=0)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="allocations", to="ledger_core.invoice")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="ledger_core.paymentreceived")),
            ],
            options={
                "ordering": ("payment", "sequence"),
                "indexes": [
                    models.Index(fields=["invoice", "kind"], name="alloc_invoice_kind_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gte", 0)), name="allocation_non_negative_amount"),
                ],
            },
        ),
    ]
