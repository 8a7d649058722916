"""Compatibility engine entry points.

Validates a candidate component against a configuration snapshot.
The checkers are decentralized: every existing component contributes
requirements, so the order in which a build was assembled never changes
the verdict.
"""

from __future__ import annotations

import logging
from typing import Optional

from rackwise.engine.checkers import CHECKERS, run_checker
from rackwise.engine.context import ValidationContext
from rackwise.engine.lookup import ComponentSpecLookup
from rackwise.engine.policy import SpecPolicy
from rackwise.engine.results import CompatibilityResult
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration

logger = logging.getLogger(__name__)


def check_compatibility(
    component_type: ComponentType,
    candidate: Component,
    configuration: Configuration,
    lookup: ComponentSpecLookup,
    policy: Optional[SpecPolicy] = None,
) -> CompatibilityResult:
    """Decide whether ``candidate`` can join ``configuration``.

    A candidate already present in the configuration (same uuid) is
    checked against the rest of the build, which is what replacing or
    re-validating it means.
    """
    component_type = ComponentType(component_type)
    if component_type not in CHECKERS:
        raise ValueError(f"No compatibility checker for component type: {component_type.value}")
    if candidate.component_type != component_type:
        raise ValueError(
            f"Candidate is a {candidate.component_type.value}, not a {component_type.value}"
        )

    ctx = ValidationContext(configuration.without_component(candidate.uuid), lookup, policy)
    result = run_checker(candidate, ctx)
    logger.debug(
        "Checked %s %s against %d component(s): compatible=%s",
        component_type.value,
        candidate.uuid,
        len(ctx.configuration.components),
        result.compatible,
    )
    return result
