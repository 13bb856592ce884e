from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from apps.catalog.models import Unit
from apps.catalog.units import base_quantity, unit_multiplier


class UnitResolverTests(TestCase):
    def test_static_table_without_registry(self):
        self.assertEqual(unit_multiplier("BOX"), 12)
        self.assertEqual(unit_multiplier("carton"), 24)
        self.assertEqual(unit_multiplier(" pcs "), 1)

    def test_registry_overrides_static_table(self):
        Unit.objects.create(name="Box", abbreviation="box", multiplier=10)
        self.assertEqual(unit_multiplier("BOX"), 10)

    def test_unknown_or_empty_unit_is_base(self):
        self.assertEqual(unit_multiplier("SACK"), 1)
        self.assertEqual(unit_multiplier(""), 1)
        self.assertEqual(unit_multiplier(None), 1)

    def test_base_quantity_adds_extra_pieces(self):
        self.assertEqual(base_quantity(5, "BOX", 2), 62)
        self.assertEqual(base_quantity(3, "PCS"), 3)


class SeedUnitsCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_units", stdout=StringIO())
        call_command("seed_units", stdout=StringIO())

        self.assertEqual(Unit.objects.count(), 6)
        self.assertEqual(Unit.objects.get(abbreviation="CARTON").multiplier, 24)
