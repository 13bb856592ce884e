from django.core.management.base import BaseCommand

from apps.catalog.models import Unit

DEFAULT_UNITS = [
    ("Pieces", "PCS", 1, True),
    ("Kilogram", "KG", 1, True),
    ("Litre", "LTR", 1, True),
    ("Box", "BOX", 12, False),
    ("Carton", "CARTON", 24, False),
    ("Dozen", "DOZEN", 12, False),
]


class Command(BaseCommand):
    help = "Seed the default units of measure."

    def handle(self, *args, **options):
        created_units = 0
        for name, abbreviation, multiplier, is_base in DEFAULT_UNITS:
            _, created = Unit.objects.get_or_create(
                abbreviation=abbreviation,
                defaults={"name": name, "multiplier": multiplier, "is_base": is_base},
            )
            if created:
                created_units += 1

        self.stdout.write(
            self.style.SUCCESS(f"Seed units completed. units_created={created_units} total={Unit.objects.count()}")
        )
