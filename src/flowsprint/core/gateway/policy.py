from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    FAST_INFERENCE = "fast-inference"
    GENERAL_PURPOSE = "general-purpose"
    CODE_SPECIALIST = "code-specialist"


Condition = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True, slots=True)
class RoutingPolicy:
    """Ordered role preference for one request kind.

    A role listed in ``conditions`` is only eligible when its predicate accepts
    the payload. The general-purpose role always closes the order.
    """

    kind: str
    order: tuple[Role, ...]
    conditions: Mapping[Role, Condition] = field(default_factory=dict)

    def roles(self) -> tuple[Role, ...]:
        if self.order and self.order[-1] == Role.GENERAL_PURPOSE:
            return self.order
        return tuple(r for r in self.order if r != Role.GENERAL_PURPOSE) + (Role.GENERAL_PURPOSE,)

    def allows(self, role: Role, payload: Mapping[str, Any]) -> bool:
        if role == Role.GENERAL_PURPOSE:
            return True
        condition = self.conditions.get(role)
        return True if condition is None else bool(condition(payload))


def _wants_speed(payload: Mapping[str, Any]) -> bool:
    return (payload.get("priority") or "speed") == "speed"


def _not_low_complexity(payload: Mapping[str, Any]) -> bool:
    return (payload.get("complexity") or "medium") != "low"


def _is_comprehensive(payload: Mapping[str, Any]) -> bool:
    return (payload.get("complexity") or "standard") == "comprehensive"


DEFAULT_POLICIES: dict[str, RoutingPolicy] = {
    "mindmap": RoutingPolicy(
        kind="mindmap",
        order=(Role.FAST_INFERENCE, Role.GENERAL_PURPOSE),
        conditions={Role.FAST_INFERENCE: _wants_speed},
    ),
    "code": RoutingPolicy(
        kind="code",
        order=(Role.CODE_SPECIALIST, Role.GENERAL_PURPOSE),
        conditions={Role.CODE_SPECIALIST: _not_low_complexity},
    ),
    "node-code": RoutingPolicy(
        kind="node-code",
        order=(Role.CODE_SPECIALIST, Role.GENERAL_PURPOSE),
        conditions={Role.CODE_SPECIALIST: _not_low_complexity},
    ),
    "prd": RoutingPolicy(
        kind="prd",
        order=(Role.CODE_SPECIALIST, Role.GENERAL_PURPOSE),
        conditions={Role.CODE_SPECIALIST: _is_comprehensive},
    ),
}
