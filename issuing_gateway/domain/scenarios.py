"""Named demo authorization scenarios for the test-authorization endpoint"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class DemoMerchant:
    """Merchant identity used when creating provider test authorizations"""

    name: str
    mcc: str
    city: str = "London"
    postal_code: str = "EC1A 1BB"


@dataclass(frozen=True)
class Scenario:
    """Predefined test authorization"""

    key: str
    title: str
    description: str
    merchant: DemoMerchant
    amount: int  # minor units

    @property
    def is_amount_controllable(self) -> bool:
        # Automated fuel dispensers are the only controllable-amount merchants in the demo
        return self.merchant.mcc == "5542"


PAUL = DemoMerchant(name="Paul", mcc="5812")
UBER = DemoMerchant(name="Uber", mcc="4121")
SEPHORA = DemoMerchant(name="Sephora", mcc="5977")
GAS_STATION = DemoMerchant(name="Gas Station", mcc="5541")
FUEL_DISPENSER = DemoMerchant(name="Gas Station", mcc="5542")

SCENARIOS: Dict[str, Scenario] = {
    s.key: s
    for s in [
        Scenario("paul-success", "Paul Boulangerie (Success)", "Restaurant transaction within limits", PAUL, 1250),
        Scenario("uber-success", "Uber (Success)", "Taxi transaction within limits", UBER, 1850),
        Scenario("sephora-success", "Sephora (Success)", "Cosmetics purchase within limits", SEPHORA, 2200),
        Scenario("gas-station-blocked", "Gas Station (Blocked)", "Blocked by merchant controls", GAS_STATION, 3000),
        Scenario("high-amount-declined", "High Amount (Declined)", "Exceeds the daily spending limit", PAUL, 7500),
        Scenario(
            "partial-authorization",
            "Fuel Dispenser (Partial)",
            "Controllable amount over the daily limit",
            FUEL_DISPENSER,
            10000,
        ),
    ]
}


def get_scenario(key: str) -> Optional[Scenario]:
    return SCENARIOS.get(key)
