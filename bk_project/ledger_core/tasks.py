import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def heal_balances_task(company_id):
    """Rebuild drifted account balances of one company from the ledger."""
    # import lazily to avoid circular imports at module import time
    from .models import Company
    from .services.propagation import heal_account_balances

    company = Company.objects.get(pk=company_id)
    healed = heal_account_balances(company)
    logger.info(
        "Balance healing finished, %d account(s) fixed", len(healed),
        extra={"company_id": company_id},
    )
    return healed


@shared_task
def generate_notifications_task(company_id):
    """Derive alerts (overdue invoices, LC expiry, pending journals, loans)."""
    from .models import Company
    from .services.notifications import derive_notifications

    company = Company.objects.get(pk=company_id)
    return [n.pk for n in derive_notifications(company)]


@shared_task
def generate_all_notifications_task():
    """Fan out generate_notifications_task to every company."""
    from .models import Company

    company_ids = list(Company.objects.values_list("pk", flat=True))
    for company_id in company_ids:
        generate_notifications_task.delay(company_id)
    return company_ids
