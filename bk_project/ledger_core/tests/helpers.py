import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from ..chart import seed_chart
from ..models import Account, Company, Currency, EntityMembership
from ..services.authz import resolve_actor

User = get_user_model()


def make_company(name="Test Co", slug="test-co", currency_code="BDT"):
    currency, _ = Currency.objects.get_or_create(
        code=currency_code, defaults={"name": currency_code}
    )
    company = Company.objects.create(name=name, slug=slug, base_currency=currency)
    seed_chart(company)
    return company


def make_actor(company, role, username=None, manager=None):
    """User + membership with ``role``; returns the resolved ActorContext."""
    username = username or f"{role}-{company.slug}"
    user = User.objects.create_user(username=username, password="pw")
    EntityMembership.objects.create(
        user=user, company=company, role=role, manager=manager
    )
    return resolve_actor(user, company)


def set_opening(account, amount):
    """Opening balance (and the matching current balance) for a test account."""
    amount = Decimal(amount)
    Account.objects.filter(pk=account.pk).update(
        opening_balance=amount, current_balance=amount
    )
    account.refresh_from_db()
    return account


class LedgerTestMixin:
    """
    One company with the starter chart and one actor per role.
    Accounts: cash, bank, ar, inventory, ap, capital, sales, rent.
    """

    def setUp(self):
        self.company = make_company()
        accounts = {a.code: a for a in Account.objects.filter(company=self.company)}
        self.cash = accounts["1000"]
        self.bank = accounts["1010"]
        self.ar = accounts["1100"]
        self.inventory = accounts["1200"]
        self.ap = accounts["2000"]
        self.capital = accounts["3000"]
        self.sales = accounts["4000"]
        self.rent = accounts["5000"]

        self.owner = make_actor(self.company, EntityMembership.OWNER)
        self.admin = make_actor(self.company, EntityMembership.ADMIN)
        self.manager = make_actor(self.company, EntityMembership.MANAGER)
        self.accountant = make_actor(self.company, EntityMembership.ACCOUNTANT)
        self.user = make_actor(self.company, EntityMembership.USER)
        self.today = timezone.localdate()

    def fund_cash(self, amount):
        """Cash and Capital opening balances so the books start balanced."""
        set_opening(self.cash, amount)
        set_opening(self.capital, amount)

    def rent_lines(self, amount, expense=None, credit_account=None):
        amount = Decimal(amount)
        return [
            {"account": (expense or self.rent).pk, "debit": amount, "credit": 0},
            {"account": (credit_account or self.cash).pk, "debit": 0, "credit": amount},
        ]

    def entry_data(self, amount="45000", date=None, **extra):
        data = {
            "date": date or self.today,
            "description": "Office rent",
            "lines": self.rent_lines(amount),
        }
        data.update(extra)
        return data

    def days_ago(self, days):
        return self.today - datetime.timedelta(days=days)
