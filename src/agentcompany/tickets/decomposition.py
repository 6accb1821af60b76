"""YAML decomposition plans: the child and grandchild tickets for one parent.

Example::

    children:
      - title: Build the parser
        worker_type: developer
        description: Tolerant output parsing
        grandchildren:
          - title: Vitest summary line
            acceptance_criteria:
              - handles ANSI colors
              - computes missing totals
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from agentcompany.domain.models import ChildTicketSpec, GrandchildTicketSpec
from agentcompany.errors import NotFoundError, ValidationError


@dataclass(frozen=True, slots=True)
class ChildPlan:
    spec: ChildTicketSpec
    grandchildren: tuple[GrandchildTicketSpec, ...] = ()


@dataclass(frozen=True, slots=True)
class DecompositionPlan:
    children: tuple[ChildPlan, ...]

    @property
    def grandchild_count(self) -> int:
        return sum(len(child.grandchildren) for child in self.children)


def parse_decomposition_plan(text: str) -> DecompositionPlan:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValidationError(f"decomposition plan is not valid YAML: {exc}") from exc
    return decomposition_plan_from_data(document)


def load_decomposition_plan(path: str | Path) -> DecompositionPlan:
    plan_path = Path(path)
    try:
        text = plan_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFoundError(f"decomposition plan not found: {plan_path}") from exc
    return parse_decomposition_plan(text)


def decomposition_plan_from_data(document: object) -> DecompositionPlan:
    """Validate an already-parsed plan; both snake_case and camelCase keys are accepted."""
    if not isinstance(document, Mapping):
        raise ValidationError("decomposition plan must be a mapping with a 'children' list")
    children_raw = document.get("children")
    if not isinstance(children_raw, list) or not children_raw:
        raise ValidationError("decomposition plan requires a non-empty 'children' list")

    children: list[ChildPlan] = []
    for index, item in enumerate(children_raw):
        if not isinstance(item, Mapping):
            raise ValidationError(f"children[{index}] must be a mapping")
        spec = ChildTicketSpec.create(
            title=item.get("title"),
            description=item.get("description"),
            worker_type=_pick(item, "worker_type", "workerType"),
        )
        grandchildren_raw = _pick(item, "grandchildren", "grandchildTickets") or []
        if not isinstance(grandchildren_raw, list):
            raise ValidationError(f"children[{index}].grandchildren must be a list")
        grandchildren = tuple(
            _grandchild_spec(entry, f"children[{index}].grandchildren[{position}]")
            for position, entry in enumerate(grandchildren_raw)
        )
        children.append(ChildPlan(spec=spec, grandchildren=grandchildren))
    return DecompositionPlan(children=tuple(children))


def _grandchild_spec(entry: object, path: str) -> GrandchildTicketSpec:
    if not isinstance(entry, Mapping):
        raise ValidationError(f"{path} must be a mapping")
    return GrandchildTicketSpec.create(
        title=entry.get("title"),
        description=entry.get("description"),
        acceptance_criteria=_pick(entry, "acceptance_criteria", "acceptanceCriteria") or [],
        assignee=entry.get("assignee"),
        git_branch=_pick(entry, "git_branch", "gitBranch"),
    )


def _pick(mapping: Mapping[str, object], *keys: str) -> object:
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


__all__ = [
    "ChildPlan",
    "DecompositionPlan",
    "decomposition_plan_from_data",
    "load_decomposition_plan",
    "parse_decomposition_plan",
]
