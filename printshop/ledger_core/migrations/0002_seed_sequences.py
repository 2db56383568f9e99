from django.db import migrations

KINDS = ("CLIENT", "INVOICE", "RECEIPT", "VOUCHER")


def create_sequences(apps, schema_editor):
    Sequence = apps.get_model("ledger_core", "Sequence")
    # every counter starts at 0, the first number handed out is 001
    for kind in KINDS:
        Sequence.objects.get_or_create(kind=kind, defaults={"value": 0})


class Migration(migrations.Migration):

    dependencies = [
        ("ledger_core", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_sequences, reverse_code=migrations.RunPython.noop),
    ]
