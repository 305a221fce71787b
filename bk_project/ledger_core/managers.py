from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(company=company)

    def active(self, company):
        return self.filter(
            company=company,  # enforce tenant scoping
            is_active=True,  # only fetch active records
        )


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


# ----------------------------------------------
# Journal lines: the only input of every report
# ----------------------------------------------
class JournalLineQuerySet(TenantQuerySet):
    def approved(self, company):
        # lines of APPROVED entries only; drafts never reach the ledger
        return self.filter(company=company, journal__status="APPROVED")


class JournalLineManager(models.Manager.from_queryset(JournalLineQuerySet)):
    pass
