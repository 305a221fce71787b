import django.db.models.deletion
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


def _approval_fields():
    """Fields of the abstract ApprovalDocument base."""
    return [
        ("status", models.CharField(
            choices=[
                ("DRAFT", "Draft"),
                ("PENDING_VERIFICATION", "Pending verification"),
                ("VERIFIED", "Verified"),
                ("PENDING_APPROVAL", "Pending approval"),
                ("APPROVED", "Approved"),
                ("REJECTED", "Rejected"),
            ],
            default="DRAFT",
            max_length=24,
        )),
        ("verified_at", models.DateTimeField(blank=True, null=True)),
        ("approved_at", models.DateTimeField(blank=True, null=True)),
        ("rejection_reason", models.TextField(blank=True, null=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def _approval_users(model_name):
    def user_fk(suffix):
        return models.ForeignKey(
            blank=True,
            null=True,
            on_delete=django.db.models.deletion.SET_NULL,
            related_name=f"{model_name}_{suffix}",
            to=settings.AUTH_USER_MODEL,
        )

    return [
        ("created_by", user_fk("created")),
        ("verified_by", user_fk("verified")),
        ("approved_by", user_fk("approved")),
        ("rejected_by", user_fk("rejected")),
    ]


def _dimension(name, constraint, **options):
    return migrations.CreateModel(
        name=name,
        fields=[
            ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
            ("code", models.CharField(max_length=32)),
            ("name", models.CharField(max_length=200)),
            ("is_active", models.BooleanField(default=True)),
            ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
        ],
        options={
            **options,
            "constraints": [
                models.UniqueConstraint(fields=("company", "code"), name=constraint),
            ],
        },
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Currency",
            fields=[
                ("code", models.CharField(max_length=3, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=64)),
                ("symbol", models.CharField(blank=True, max_length=8, null=True)),
                ("decimal_places", models.PositiveSmallIntegerField(default=2)),
            ],
            options={
                "verbose_name_plural": "currencies",
            },
        ),
        migrations.CreateModel(
            name="AccountType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(
                    choices=[
                        ("ASSET", "Asset"),
                        ("LIABILITY", "Liability"),
                        ("EQUITY", "Equity"),
                        ("INCOME", "Income"),
                        ("EXPENSE", "Expense"),
                    ],
                    max_length=10,
                    unique=True,
                )),
                ("normal_side", models.CharField(choices=[("DEBIT", "Debit"), ("CREDIT", "Credit")], max_length=6)),
            ],
        ),
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("base_currency", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="companies",
                    to="ledger_core.currency",
                )),
            ],
            options={
                "verbose_name_plural": "companies",
            },
        ),
        migrations.CreateModel(
            name="EntityMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(
                    choices=[
                        ("owner", "Owner"),
                        ("admin", "Admin"),
                        ("manager", "Manager"),
                        ("accountant", "Accountant"),
                        ("user", "User"),
                    ],
                    default="user",
                    max_length=20,
                )),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="memberships",
                    to="ledger_core.company",
                )),
                ("manager", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="subordinates",
                    to="ledger_core.entitymembership",
                )),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="memberships",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "indexes": [models.Index(fields=["company", "user"], name="em_company_user_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "company"), name="uq_user_company_membership"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("current_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("category", models.CharField(
                    blank=True,
                    choices=[
                        ("CASH", "Cash"),
                        ("BANK", "Bank"),
                        ("AR", "Accounts Receivable"),
                        ("AP", "Accounts Payable"),
                        ("REVENUE", "Revenue"),
                        ("INVENTORY", "Inventory"),
                        ("OTHER", "Other"),
                    ],
                    max_length=10,
                    null=True,
                )),
                ("cash_flow_type", models.CharField(
                    blank=True,
                    choices=[
                        ("OPERATING", "Operating"),
                        ("INVESTING", "Investing"),
                        ("FINANCING", "Financing"),
                    ],
                    max_length=10,
                    null=True,
                )),
                ("allow_negative", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("account_type", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="accounts",
                    to="ledger_core.accounttype",
                )),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="accounts",
                    to="ledger_core.company",
                )),
                ("parent", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="children",
                    to="ledger_core.account",
                )),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "code"], name="acct_company_code_idx"),
                    models.Index(fields=["company", "category"], name="acct_company_category_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_account_code"),
                ],
            },
        ),
        _dimension("Branch", "uq_company_branch_code", verbose_name_plural="branches"),
        _dimension("Project", "uq_company_project_code"),
        _dimension("CostCenter", "uq_company_costcenter_code"),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("payment_terms_days", models.IntegerField(default=30)),
                ("is_active", models.BooleanField(default=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "indexes": [models.Index(fields=["company", "name"], name="cust_company_name_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_customer_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("payment_terms_days", models.IntegerField(default=30)),
                ("is_active", models.BooleanField(default=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "indexes": [models.Index(fields=["company", "name"], name="vend_company_name_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_vendor_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_approval_fields(),
                ("entry_number", models.CharField(max_length=32)),
                ("date", models.DateField()),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("exchange_rate", models.DecimalField(decimal_places=6, default=Decimal("1"), max_digits=18)),
                ("total_debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("source_type", models.CharField(blank=True, max_length=50, null=True)),
                ("source_id", models.BigIntegerField(blank=True, null=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("currency", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.currency",
                )),
                *_approval_users("journalentry"),
            ],
            options={
                "verbose_name": "journal entry",
                "verbose_name_plural": "journal entries",
                "indexes": [
                    models.Index(fields=["company", "date"], name="je_company_date_idx"),
                    models.Index(fields=["company", "status"], name="je_company_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "entry_number"), name="uq_je_company_number"),
                    models.CheckConstraint(condition=models.Q(("exchange_rate__gt", 0)), name="je_exchange_rate_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, max_length=400, null=True)),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("exchange_rate", models.DecimalField(decimal_places=6, default=Decimal("1"), max_digits=18)),
                ("debit_base", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit_base", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("reconciled", models.BooleanField(default=False)),
                ("reconciled_at", models.DateTimeField(blank=True, null=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="lines",
                    to="ledger_core.account",
                )),
                ("branch", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.branch")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("cost_center", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.costcenter")),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.customer")),
                ("journal", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="lines",
                    to="ledger_core.journalentry",
                )),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.project")),
                ("vendor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.vendor")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "account"], name="jl_company_account_idx"),
                    models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("debit__gte", 0), ("credit__gte", 0)),
                        name="jl_non_negative_amounts",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("debit_base__gte", 0), ("credit_base__gte", 0)),
                        name="jl_non_negative_base_amounts",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(models.Q(("debit", 0), ("credit", 0)), _negated=True),
                        name="jl_debit_or_credit_nonzero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *_approval_fields(),
                ("invoice_number", models.CharField(max_length=32)),
                ("invoice_date", models.DateField()),
                ("due_date", models.DateField(blank=True, null=True)),
                ("exchange_rate", models.DecimalField(decimal_places=6, default=Decimal("1"), max_digits=18)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_base", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("description", models.TextField(blank=True, null=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("currency", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.currency",
                )),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="invoices",
                    to="ledger_core.customer",
                )),
                ("journal", models.OneToOneField(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="invoice",
                    to="ledger_core.journalentry",
                )),
                *_approval_users("invoice"),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "customer"], name="inv_company_customer_idx"),
                    models.Index(fields=["company", "status"], name="inv_company_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "invoice_number"), name="uq_invoice_company_number"),
                    models.CheckConstraint(condition=models.Q(("exchange_rate__gt", 0)), name="inv_exchange_rate_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(max_length=400)),
                ("quantity", models.DecimalField(decimal_places=4, default=Decimal("1"), max_digits=18)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=18)),
                ("tax_rate", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5)),
                ("line_subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("invoice", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="lines",
                    to="ledger_core.invoice",
                )),
                ("revenue_account", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="invoice_lines",
                    to="ledger_core.account",
                )),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gt", 0)), name="invline_quantity_positive"),
                    models.CheckConstraint(condition=models.Q(("unit_price__gte", 0)), name="invline_unit_price_non_negative"),
                    models.CheckConstraint(condition=models.Q(("tax_rate__gte", 0)), name="invline_tax_rate_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("doc_type", models.CharField(choices=[("invoice", "Invoice"), ("journal", "Journal entry")], max_length=10)),
                ("year", models.PositiveIntegerField()),
                ("last_value", models.PositiveIntegerField(default=0)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="sequences",
                    to="ledger_core.company",
                )),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "doc_type", "year"), name="uq_sequence_company_type_year"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(
                    choices=[
                        ("PENDING_JOURNAL", "Pending journal"),
                        ("OVERDUE_INVOICE", "Overdue invoice"),
                        ("LC_EXPIRY", "LC expiry"),
                        ("LOAN_DUE", "Loan due"),
                    ],
                    max_length=20,
                )),
                ("severity", models.CharField(
                    choices=[("INFO", "Info"), ("WARNING", "Warning"), ("DANGER", "Danger")],
                    default="INFO",
                    max_length=10,
                )),
                ("title", models.CharField(max_length=200)),
                ("message", models.TextField(blank=True, default="")),
                ("entity_type", models.CharField(blank=True, max_length=50, null=True)),
                ("entity_id", models.BigIntegerField(blank=True, null=True)),
                ("is_read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="notifications",
                    to="ledger_core.company",
                )),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["company", "is_read"], name="notif_company_read_idx"),
                    models.Index(fields=["company", "type", "entity_id"], name="notif_company_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="LetterOfCredit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("lc_number", models.CharField(max_length=64)),
                ("bank_name", models.CharField(max_length=200)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("issue_date", models.DateField()),
                ("expiry_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("OPEN", "Open"), ("APPROVED", "Approved"), ("CLOSED", "Closed")],
                    default="OPEN",
                    max_length=10,
                )),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("currency", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.currency",
                )),
            ],
            options={
                "verbose_name": "letter of credit",
                "verbose_name_plural": "letters of credit",
                "constraints": [
                    models.UniqueConstraint(fields=("company", "lc_number"), name="uq_company_lc_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Loan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("loan_number", models.CharField(max_length=64)),
                ("bank_name", models.CharField(max_length=200)),
                ("principal_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("outstanding_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("interest_rate", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=6)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("ACTIVE", "Active"), ("CLOSED", "Closed")],
                    default="ACTIVE",
                    max_length=10,
                )),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "loan_number"), name="uq_company_loan_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to="ledger_core.company",
                )),
                ("user", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "user"], name="audit_company_user_idx"),
                    models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                ],
            },
        ),
    ]
