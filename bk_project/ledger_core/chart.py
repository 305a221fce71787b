from decimal import Decimal

from django.db import transaction

from .models import Account, AccountType

# code, name, type, category, cash flow type
STARTER_CHART = [
    ("1000", "Cash in Hand", AccountType.ASSET, Account.CASH, "OPERATING"),
    ("1010", "Bank", AccountType.ASSET, Account.BANK, "OPERATING"),
    ("1100", "Accounts Receivable", AccountType.ASSET, Account.AR, "OPERATING"),
    ("1200", "Inventory", AccountType.ASSET, Account.INVENTORY, "OPERATING"),
    ("2000", "Accounts Payable", AccountType.LIABILITY, Account.AP, "OPERATING"),
    ("2100", "Loans Payable", AccountType.LIABILITY, Account.OTHER, "FINANCING"),
    ("3000", "Capital", AccountType.EQUITY, Account.OTHER, "FINANCING"),
    ("4000", "Sales Revenue", AccountType.INCOME, Account.REVENUE, "OPERATING"),
    ("5000", "Rent Expense", AccountType.EXPENSE, Account.OTHER, "OPERATING"),
    ("5100", "Salaries Expense", AccountType.EXPENSE, Account.OTHER, "OPERATING"),
    ("5200", "Utilities Expense", AccountType.EXPENSE, Account.OTHER, "OPERATING"),
]


def ensure_account_types():
    """The five account types with their normal sides."""
    return {
        name: AccountType.objects.get_or_create(
            name=name, defaults={"normal_side": side}
        )[0]
        for name, side in AccountType.DEFAULT_SIDES.items()
    }


@transaction.atomic
def seed_chart(company):
    """Create the starter accounts a company is missing. Returns created ones."""
    types = ensure_account_types()
    created = []
    for code, name, type_name, category, cash_flow in STARTER_CHART:
        account, was_created = Account.objects.get_or_create(
            company=company,
            code=code,
            defaults={
                "name": name,
                "account_type": types[type_name],
                "category": category,
                "cash_flow_type": cash_flow,
                "opening_balance": Decimal("0.00"),
            },
        )
        if was_created:
            created.append(account)
    return created
