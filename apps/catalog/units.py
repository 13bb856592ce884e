from apps.catalog.models import Unit, normalize_taxonomy_name

FALLBACK_MULTIPLIERS = {
    "PCS": 1,
    "KG": 1,
    "LTR": 1,
    "BOX": 12,
    "CARTON": 24,
    "DOZEN": 12,
}


def unit_multiplier(code) -> int:
    """
    Base-unit multiplier for a unit code.

    Registry first, then the static table, then 1. Never raises: an unknown
    unit is treated as the base unit. Reads the registry on every call since
    units can be edited at any time.
    """
    abbreviation = normalize_taxonomy_name(code)
    if not abbreviation:
        return 1
    multiplier = Unit.objects.filter(abbreviation=abbreviation).values_list("multiplier", flat=True).first()
    if multiplier is None:
        multiplier = FALLBACK_MULTIPLIERS.get(abbreviation, 1)
    return max(int(multiplier), 1)


def base_quantity(quantity, unit, extra_pieces=0) -> int:
    return int(quantity) * unit_multiplier(unit) + int(extra_pieces or 0)
