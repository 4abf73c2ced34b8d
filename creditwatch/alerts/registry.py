from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

from .rules import concentration, credit_limit, delinquency, rating_divergence
from .rules.base import AlertRule, TierThresholds


RuleFactory = Callable[[TierThresholds], AlertRule]

RULE_FAMILIES: Dict[str, Tuple[RuleFactory, TierThresholds]] = {
    "credit_limit": (credit_limit.CreditLimitRule, credit_limit.DEFAULT_THRESHOLDS),
    "delinquency": (delinquency.DelinquencyRule, delinquency.DEFAULT_THRESHOLDS),
    "rating_downgrade": (rating_divergence.RatingDivergenceRule, rating_divergence.DEFAULT_THRESHOLDS),
    "concentration": (concentration.ConcentrationRule, concentration.DEFAULT_THRESHOLDS),
}


def build_rules(config: Dict[str, Any] | None = None) -> List[AlertRule]:
    """
    Instantiate every rule family, applying per-family overrides.

    Families are enabled unless their section sets ``enabled: false``.
    """
    rules: List[AlertRule] = []
    rules_config = config.get("rules") if isinstance(config, dict) else None
    if not isinstance(rules_config, dict):
        rules_config = {}

    unknown = set(rules_config) - set(RULE_FAMILIES)
    if unknown:
        raise ValueError(f"Unknown rule families in config: {', '.join(sorted(unknown))}")

    for name, (factory, defaults) in RULE_FAMILIES.items():
        family_conf = rules_config.get(name) or {}
        if not isinstance(family_conf, dict):
            raise ValueError(f"Rule configuration for '{name}' must be a mapping")
        if not family_conf.get("enabled", True):
            continue
        rules.append(factory(TierThresholds.from_dict(family_conf, defaults)))

    return rules
