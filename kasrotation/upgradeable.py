"""Upgradeable condition that turns false when the rotation base is overridden."""

from __future__ import annotations

import enum
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta

CONDITION_TYPE = "CertRotationTimeUpgradeable"
CONFIG_NAMESPACE = "openshift-config"
CONFIG_MAP_NAME = "unsupported-cert-rotation-config"
CONTROLLER_NAME = "CertRotationTimeUpgradeableController"
RESYNC_INTERVAL = timedelta(minutes=1)


class ConditionStatus(str, enum.Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


@dataclass
class OperatorCondition:
    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""


@dataclass
class ConfigMap:
    namespace: str = ""
    name: str = ""
    data: dict[str, str] = field(default_factory=dict)


class NotFoundError(LookupError):
    """The requested object does not exist."""


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def new_upgradeable_condition(config_map: ConfigMap | None) -> OperatorCondition:
    """The condition for the given override config map (None when absent)."""
    base = config_map.data.get("base", "") if config_map is not None else ""
    if not base:
        return OperatorCondition(
            type=CONDITION_TYPE,
            status=ConditionStatus.TRUE,
            reason="DefaultCertRotationBase",
        )
    return OperatorCondition(
        type=CONDITION_TYPE,
        status=ConditionStatus.FALSE,
        reason="CertRotationBaseOverridden",
        message=(
            f"configmap[{_quote(config_map.namespace)}]/{config_map.name} "
            f'.data["base"]=={_quote(base)}'
        ),
    )


class CertRotationTimeUpgradeableController:
    """Keeps the upgradeable condition in line with the override config map.

    ``get_config_map(namespace, name)`` returns a ConfigMap or raises
    NotFoundError; ``update_condition(condition)`` records the condition in
    the operator status.
    """

    def __init__(
        self,
        get_config_map: Callable[[str, str], ConfigMap],
        update_condition: Callable[[OperatorCondition], object],
    ) -> None:
        self._get_config_map = get_config_map
        self._update_condition = update_condition

    def sync(self) -> OperatorCondition:
        """Compute the condition, store it, and return it."""
        try:
            config_map: ConfigMap | None = self._get_config_map(
                CONFIG_NAMESPACE, CONFIG_MAP_NAME
            )
        except NotFoundError:
            config_map = None
        condition = new_upgradeable_condition(config_map)
        self._update_condition(condition)
        return condition