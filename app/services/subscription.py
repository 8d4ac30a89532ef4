"""
Subscription plan matrix for custom domain entitlements.

Only the domain-related limits live here; the rest of the billing catalogue
is owned by the billing service.
"""

PLAN_MATRIX = {
    "trial": {
        "display_name": "Trial",
        "features": {
            "custom_domain": False,
        },
        "max_custom_domains": 0,
    },
    "starter": {
        "display_name": "Starter",
        "features": {
            "custom_domain": False,
        },
        "max_custom_domains": 0,
    },
    "professional": {
        "display_name": "Professional",
        "features": {
            "custom_domain": True,
        },
        "max_custom_domains": 3,
    },
    "enterprise": {
        "display_name": "Enterprise",
        "features": {
            "custom_domain": True,
        },
        "max_custom_domains": None,  # Unlimited
    },
}


def get_plan(plan_name: str) -> dict:
    """Get plan config by name. Falls back to 'trial'."""
    return PLAN_MATRIX.get(plan_name, PLAN_MATRIX["trial"])


def get_plan_feature(plan_name: str, feature: str) -> bool:
    """Check if a feature is available for a plan."""
    plan = get_plan(plan_name)
    return plan["features"].get(feature, False)


def get_plan_limit(plan_name: str, limit_name: str) -> int | None:
    """Get a numeric limit for a plan. None = unlimited."""
    plan = get_plan(plan_name)
    return plan.get(limit_name, 0)

