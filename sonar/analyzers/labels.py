"""
Sonar Device Type Label Inference
==================================

Turns the accumulated advertisement tags of a record or correlation
group, plus an optional advertised name, into a human device label.
Rules are tried in table order and the first match wins.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sonar.analyzers.rules import APPLE_RULES, FamilyRules


def infer_device_label(
    tags: Iterable[str],
    name: Optional[str] = None,
    rules: FamilyRules = APPLE_RULES,
) -> str:
    """Return the first matching label, or the family's generic label."""
    tag_set = set(tags)
    lowered = (name or "").lower()
    for rule in rules.label_rules:
        if rule.matches(tag_set, lowered):
            return rule.label
    return rules.generic_label
