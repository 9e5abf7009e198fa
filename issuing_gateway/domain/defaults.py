"""Demo spending policy: merchants, category codes and limit presets"""

from typing import Dict, List

from issuing_gateway.domain.exceptions import PolicyConfigError
from issuing_gateway.domain.models import (
    CategoryRule,
    LimitPeriod,
    MerchantEntry,
    PolicyConfig,
    SpendingLimit,
)

ALLOWED_MERCHANTS = [
    MerchantEntry(name_pattern="Paul", category_code="5812"),
    MerchantEntry(name_pattern="Uber", category_code="4121"),
    MerchantEntry(name_pattern="Sephora", category_code="5977"),
]

BLOCKED_MERCHANTS = [
    MerchantEntry(name_pattern="Gas Station", category_code="5541"),
    MerchantEntry(name_pattern="Casino", category_code="7995"),
]

CATEGORY_RULES: Dict[str, CategoryRule] = {
    "5812": CategoryRule(allowed=True, label="Restaurants"),
    "4121": CategoryRule(allowed=True, label="Taxi & Limousines"),
    "5977": CategoryRule(allowed=True, label="Cosmetic Stores"),
    "5541": CategoryRule(allowed=False, label="Gas Stations"),
    "7995": CategoryRule(allowed=False, label="Gambling"),
    "5411": CategoryRule(allowed=True, label="Grocery Stores"),
    "3000": CategoryRule(allowed=True, label="Airlines"),
    "7011": CategoryRule(allowed=True, label="Hotels"),
}

SPENDING_LIMIT_PRESETS: Dict[str, List[SpendingLimit]] = {
    "standard_employee": [
        SpendingLimit(period=LimitPeriod.MONTHLY, max_amount=50_000),  # £500
        SpendingLimit(period=LimitPeriod.DAILY, max_amount=2_500),  # £25
    ],
    "manager": [
        SpendingLimit(period=LimitPeriod.MONTHLY, max_amount=150_000),  # £1500
        SpendingLimit(period=LimitPeriod.DAILY, max_amount=7_500),  # £75
    ],
    "executive": [
        SpendingLimit(period=LimitPeriod.MONTHLY, max_amount=300_000),  # £3000
        SpendingLimit(period=LimitPeriod.DAILY, max_amount=15_000),  # £150
    ],
}

# Provider merchant_data.category slugs for the MCCs used in the demo
MCC_CATEGORY_SLUGS: Dict[str, str] = {
    "5812": "eating_places_restaurants",
    "4121": "taxicabs_limousines",
    "5977": "cosmetic_stores",
    "5541": "service_stations",
    "5542": "automated_fuel_dispensers",
    "5411": "grocery_stores_supermarkets",
    "5691": "mens_and_womens_clothing_stores",
    "7372": "computer_programming_services",
    "5734": "computer_software_stores",
    "7995": "betting_casino_gambling",
    "7011": "hotels_motels_and_resorts",
    "3000": "airlines_air_carriers",
}

CATEGORY_SLUG_MCCS: Dict[str, str] = {slug: mcc for mcc, slug in MCC_CATEGORY_SLUGS.items()}


def build_default_policy(preset: str = "standard_employee") -> PolicyConfig:
    """
    Build the demo policy with the limits of a named preset.

    Raises:
        PolicyConfigError: If the preset is unknown
    """
    try:
        limits = SPENDING_LIMIT_PRESETS[preset]
    except KeyError:
        raise PolicyConfigError(
            f"Unknown spending limit preset '{preset}' "
            f"(expected one of: {', '.join(sorted(SPENDING_LIMIT_PRESETS))})"
        ) from None

    return PolicyConfig(
        blocked_merchants=tuple(BLOCKED_MERCHANTS),
        allowed_merchants=tuple(ALLOWED_MERCHANTS),
        category_rules=CATEGORY_RULES,
        limits=tuple(limits),
    )
