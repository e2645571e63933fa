"""Static pricing catalogue shared by checkout, limits and the /pricing endpoint."""
from dataclasses import dataclass, field, replace, asdict
from typing import Optional, Tuple

UNLIMITED = -1


@dataclass(frozen=True)
class PricingPlan:
    id: str
    name: str
    price: int
    currency: str = 'USD'
    interval: str = 'month'
    features: Tuple[str, ...] = field(default_factory=tuple)
    max_users: int = UNLIMITED
    max_projects: int = UNLIMITED
    provider_price_id: Optional[str] = None

    @property
    def is_paid(self):
        return self.price > 0

    def allows_users(self, count: int) -> bool:
        """True when ``count`` seats fit within the plan."""
        return self.max_users == UNLIMITED or count <= self.max_users

    def to_dict(self):
        data = asdict(self)
        data['features'] = list(self.features)
        return data


PRICING_PLANS = {
    'free': PricingPlan(
        id='free',
        name='Free (Trial)',
        price=0,
        features=(
            'Up to 3 users',
            'Basic features',
            '1 project',
            'Email support',
            '14-day trial',
        ),
        max_users=3,
        max_projects=1,
    ),
    'starter': PricingPlan(
        id='starter',
        name='Starter',
        price=5,
        features=(
            'Up to 5 users',
            'All basic features',
            '5 projects',
            'Priority email support',
            'Advanced analytics',
        ),
        max_users=5,
        max_projects=5,
    ),
    'standard': PricingPlan(
        id='standard',
        name='Standard',
        price=10,
        features=(
            'Up to 15 users',
            'All starter features',
            'Unlimited projects',
            'Priority support',
            'Custom integrations',
            'Advanced reporting',
        ),
        max_users=15,
    ),
    'business': PricingPlan(
        id='business',
        name='Business',
        price=25,
        features=(
            'Up to 50 users',
            'All standard features',
            'Unlimited projects',
            'Priority phone & email support',
            'Advanced security features',
            'Custom integrations',
            'Dedicated account manager',
        ),
        max_users=50,
    ),
    'premium': PricingPlan(
        id='premium',
        name='Premium',
        price=50,
        features=(
            'Unlimited users',
            'All business features',
            'Unlimited projects',
            '24/7 phone & email support',
            'Dedicated account manager',
            'Custom development',
            'SLA guarantee',
            'Advanced security & compliance',
            'White-label options',
        ),
    ),
}

TIERS = tuple(PRICING_PLANS)
PAID_TIERS = tuple(tier for tier, plan in PRICING_PLANS.items() if plan.is_paid)


def get_plan(tier: str, config=None) -> Optional[PricingPlan]:
    """
    Plan for ``tier`` with its Stripe price id filled from ``config``.

    Returns None for unknown tiers.
    """
    plan = PRICING_PLANS.get(tier)
    if plan is None or config is None:
        return plan
    return replace(plan, provider_price_id=config.get(f"STRIPE_{tier.upper()}_PRICE_ID"))


def list_plans(config=None):
    return [get_plan(tier, config) for tier in TIERS]
