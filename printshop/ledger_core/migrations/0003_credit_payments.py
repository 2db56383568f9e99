from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("ledger_core", "0002_seed_sequences"),
    ]

    operations = [
        migrations.AlterField(
            model_name="paymentreceived",
            name="payment_method",
            field=models.CharField(
                choices=[
                    ("CASH", "Cash"),
                    ("BANK", "Bank"),
                    ("CHEQUE", "Cheque"),
                    ("ONLINE", "Online"),
                    ("CREDIT", "Client credit"),
                ],
                default="CASH",
                max_length=10,
            ),
        ),
        migrations.AlterField(
            model_name="auditlog",
            name="action",
            field=models.CharField(
                choices=[
                    ("CREATE", "Create"),
                    ("UPDATE", "Update"),
                    ("DELETE", "Delete"),
                    ("PAYMENT_RECEIVED", "Payment received"),
                    ("STATUS_CHANGE", "Status change"),
                    ("ACTIVATE", "Activate"),
                    ("DEACTIVATE", "Deactivate"),
                    ("CREDIT_APPLIED", "Credit applied"),
                ],
                max_length=20,
            ),
        ),
    ]
