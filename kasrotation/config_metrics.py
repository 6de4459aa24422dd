"""Gauges describing how the cluster is configured."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

NONE_PLATFORM_TYPE = "None"
DEFAULT_FEATURE_SET = ""

CLOUD_PROVIDER_DESC_ARGS = (
    "cluster_infrastructure_provider",
    "Reports whether the cluster is configured with an infrastructure provider. "
    "type is unset if no cloud provider is recognized or set to the constant used "
    "by the Infrastructure config. region is set when the cluster clearly "
    "identifies a region within the provider. The value is 1 if a cloud provider "
    "is set or 0 if it is unset.",
    ("type", "region"),
)
FEATURE_SET_DESC_ARGS = (
    "cluster_feature_set",
    "Reports the feature set the cluster is configured to expose. name corresponds "
    "to the featureSet field of the cluster. The value is 1 if a cloud provider is "
    "supported.",
    ("name",),
)
PROXY_DESC_ARGS = (
    "cluster_proxy_enabled",
    "Reports whether the cluster has been configured to use a proxy. type is which "
    "type of proxy configuration has been set - http for an http proxy, https for "
    "an https proxy, and trusted_ca if a custom CA was specified.",
    ("type",),
)


@dataclass(frozen=True)
class PlatformStatus:
    """Platform type with the region of AWS or GCP when that block is present."""

    type: str
    aws_region: str | None = None
    gcp_region: str | None = None


@dataclass(frozen=True)
class ProxySpec:
    http_proxy: str = ""
    https_proxy: str = ""
    trusted_ca_name: str = ""


@dataclass(frozen=True)
class GaugeDesc:
    name: str
    help: str
    variable_labels: tuple[str, ...]


@dataclass(frozen=True)
class Gauge:
    desc: GaugeDesc
    label_values: tuple[str, ...]
    value: float

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))


def _boolean_gauge(desc: GaugeDesc, labels: tuple[str, ...], value: bool) -> Gauge:
    return Gauge(desc, labels, 1.0 if value else 0.0)


class ConfigMetrics:
    """Collector for infrastructure, feature set and proxy configuration.

    Each getter returns the cluster-wide object; a getter that raises leaves
    its metrics out of the collection.
    """

    def __init__(
        self,
        infrastructure: Callable[[], PlatformStatus | None],
        feature_set: Callable[[], str],
        proxy: Callable[[], ProxySpec],
    ) -> None:
        self._infrastructure = infrastructure
        self._feature_set = feature_set
        self._proxy = proxy
        self.cloud_provider = GaugeDesc(*CLOUD_PROVIDER_DESC_ARGS)
        self.feature_set = GaugeDesc(*FEATURE_SET_DESC_ARGS)
        self.proxy_enablement = GaugeDesc(*PROXY_DESC_ARGS)
        self.version: Any = None
        self.last_collected: list[Gauge] = []

    def create(self, version=None) -> bool:
        """Record the registry version; these metrics register for any version."""
        self.version = version
        return True

    def describe(self) -> list[GaugeDesc]:
        return [self.cloud_provider, self.feature_set, self.proxy_enablement]

    def collect(self) -> Iterator[Gauge]:
        """Yield the current gauges, skipping any source that fails to load."""
        self.last_collected = []
        for gauge in self._gather():
            self.last_collected.append(gauge)
            yield gauge

    def _gather(self) -> Iterator[Gauge]:
        try:
            status = self._infrastructure()
        except Exception:  # a missing object simply leaves the metric out
            status = None
        if status is not None:
            yield self._cloud_provider_gauge(status)

        try:
            feature_set = self._feature_set()
        except Exception:
            pass
        else:
            yield _boolean_gauge(
                self.feature_set, (feature_set,), feature_set == DEFAULT_FEATURE_SET
            )

        try:
            proxy = self._proxy()
        except Exception:
            pass
        else:
            yield _boolean_gauge(self.proxy_enablement, ("http",), bool(proxy.http_proxy))
            yield _boolean_gauge(self.proxy_enablement, ("https",), bool(proxy.https_proxy))
            yield _boolean_gauge(
                self.proxy_enablement, ("trusted_ca",), bool(proxy.trusted_ca_name)
            )

    def _cloud_provider_gauge(self, status: PlatformStatus) -> Gauge:
        if status.type == NONE_PLATFORM_TYPE:
            return Gauge(self.cloud_provider, (status.type, ""), 0.0)
        if status.aws_region is not None:
            region = status.aws_region
        elif status.gcp_region is not None:
            region = status.gcp_region
        else:
            region = ""
        return Gauge(self.cloud_provider, (status.type, region), 1.0)

    def clear_state(self) -> None:
        """Forget the gauges kept from the last collection."""
        self.last_collected = []

    def fq_name(self) -> str:
        return "cluster_kube_apiserver_operator"