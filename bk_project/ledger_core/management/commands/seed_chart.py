from django.core.management.base import BaseCommand, CommandError

from ledger_core.chart import seed_chart
from ledger_core.models import Company


class Command(BaseCommand):
    help = "Create the account types and a starter chart of accounts for a company."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--company",  # Define flag
            required=True,
            help="Slug of the company to seed.",
        )

    def handle(self, *args, **options):
        slug = options["company"]  # Read argument from add_arguments()
        try:
            company = Company.objects.get(slug=slug)
        except Company.DoesNotExist:
            raise CommandError(f"Company '{slug}' does not exist.")

        self.stdout.write(self.style.NOTICE(f"Seeding chart of accounts for {company}..."))
        created = seed_chart(company)
        for account in created:
            self.stdout.write(f"  + {account}")
        self.stdout.write(
            self.style.SUCCESS(f"Done: {len(created)} account(s) created.")
        )
