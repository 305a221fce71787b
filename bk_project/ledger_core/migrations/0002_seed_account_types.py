from django.db import migrations

# Assets/Expenses → Debit, Liabilities/Equity/Income → Credit
ACCOUNT_TYPES = [
    ("ASSET", "DEBIT"),
    ("LIABILITY", "CREDIT"),
    ("EQUITY", "CREDIT"),
    ("INCOME", "CREDIT"),
    ("EXPENSE", "DEBIT"),
]


def seed_account_types(apps, schema_editor):
    AccountType = apps.get_model("ledger_core", "AccountType")
    for name, side in ACCOUNT_TYPES:
        AccountType.objects.get_or_create(name=name, defaults={"normal_side": side})


class Migration(migrations.Migration):

    dependencies = [
        ("ledger_core", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_account_types, reverse_code=migrations.RunPython.noop),
    ]
