# accounting/management/commands/seed_chart_of_accounts.py

from django.core.management.base import BaseCommand, CommandError

from accounts.models import Company
from accounting.chart_sv import seed_chart_of_accounts


class Command(BaseCommand):
    help = "Seed the standard Salvadoran chart of accounts for a company"

    def add_arguments(self, parser):
        parser.add_argument("company", help="Company slug")

    def handle(self, *args, **options):
        try:
            company = Company.objects.get(slug=options["company"])
        except Company.DoesNotExist:
            raise CommandError(f"Company '{options['company']}' does not exist.")

        created = seed_chart_of_accounts(company)
        total = company.accounts.count()
        self.stdout.write(self.style.SUCCESS(f"Done! Created {created}, total {total}."))
