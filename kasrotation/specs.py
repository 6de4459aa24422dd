"""Declarative description of every certificate the operator keeps rotated."""

from __future__ import annotations

import logging
import queue
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta

from kasrotation.dynamic_serving import DynamicServingRotation

logger = logging.getLogger(__name__)

OPERATOR_NAMESPACE = "openshift-kube-apiserver-operator"
TARGET_NAMESPACE = "openshift-kube-apiserver"
GLOBAL_MACHINE_SPECIFIED_CONFIG_NAMESPACE = "openshift-config-managed"

DEFAULT_ROTATION_DAY = timedelta(days=1)
# Development speed-up applied when no rotation base is configured.
_DEFAULT_SPEEDUP = 60

_YEAR = 365 * DEFAULT_ROTATION_DAY


@dataclass(frozen=True)
class UserInfo:
    """Identity embedded in a client certificate."""

    name: str
    groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClientRotation:
    """Creates client certificates for a fixed user."""

    user_info: UserInfo


@dataclass(frozen=True)
class ServingRotation:
    """Creates serving certificates for the hostnames the callable returns.

    ``hostnames_changed`` receives a signal whenever the hostnames change;
    it is None for a fixed list of hostnames.
    """

    hostnames: Callable[[], list[str]]
    hostnames_changed: queue.Queue | None = field(default=None, compare=False)


@dataclass(frozen=True)
class SigningCASecret:
    """Secret holding the rotated signing CA."""

    namespace: str
    name: str
    validity: timedelta
    refresh: timedelta
    refresh_only_when_expired: bool = False


@dataclass(frozen=True)
class CABundleConfigMap:
    """Config map holding the bundle of trusted CAs."""

    namespace: str
    name: str


@dataclass(frozen=True)
class CertKeySecret:
    """Secret holding the rotated certificate and key signed by the CA."""

    namespace: str
    name: str
    validity: timedelta
    refresh: timedelta
    cert_creator: ClientRotation | ServingRotation
    refresh_only_when_expired: bool = False


@dataclass(frozen=True)
class CertRotationSpec:
    """Everything one rotation controller needs: signer, bundle and target."""

    name: str
    signer: SigningCASecret
    ca_bundle: CABundleConfigMap
    target: CertKeySecret


def rotation_base(day: timedelta | None = None) -> timedelta:
    """The rotation base: ``day`` when set, otherwise a sped-up default day."""
    if day:
        logger.warning("!!! UNSUPPORTED VALUE SET !!!")
        logger.warning("Certificate rotation base set to %r", str(day))
        return day
    return DEFAULT_ROTATION_DAY / _DEFAULT_SPEEDUP


def _fixed_hostnames(names: Sequence[str]) -> ServingRotation:
    fixed = tuple(names)
    return ServingRotation(hostnames=lambda: list(fixed))


def _dynamic_hostnames(rotation: DynamicServingRotation) -> ServingRotation:
    return ServingRotation(
        hostnames=rotation.get_hostnames,
        hostnames_changed=rotation.hostnames_changed,
    )


def cert_rotation_specs(
    day: timedelta | None,
    refresh_only_when_expired: bool,
    service_network: DynamicServingRotation,
    external_load_balancer: DynamicServingRotation,
    internal_load_balancer: DynamicServingRotation,
) -> list[CertRotationSpec]:
    """All certificate rotations in the order their controllers are started."""
    base = rotation_base(day)
    roe = refresh_only_when_expired

    def signer(name: str, validity: timedelta, refresh: timedelta, only_expired: bool = roe) -> SigningCASecret:
        return SigningCASecret(OPERATOR_NAMESPACE, name, validity, refresh, only_expired)

    def short_lived(namespace: str, name: str, creator: ClientRotation | ServingRotation) -> CertKeySecret:
        return CertKeySecret(namespace, name, 30 * base, 15 * base, creator, roe)

    def client(name: str, *groups: str) -> ClientRotation:
        return ClientRotation(UserInfo(name, tuple(groups)))

    long_lived_signer = {"validity": 10 * _YEAR, "refresh": 8 * _YEAR}
    control_plane_signer = signer(
        "kube-control-plane-signer", 60 * DEFAULT_ROTATION_DAY, 30 * DEFAULT_ROTATION_DAY
    )
    control_plane_bundle = CABundleConfigMap(OPERATOR_NAMESPACE, "kube-control-plane-signer-ca")
    lb_signer = signer("loadbalancer-serving-signer", **long_lived_signer)
    lb_bundle = CABundleConfigMap(OPERATOR_NAMESPACE, "loadbalancer-serving-ca")

    return [
        CertRotationSpec(
            "AggregatorProxyClientCert",
            signer("aggregator-client-signer", 30 * base, 15 * base),
            CABundleConfigMap(
                GLOBAL_MACHINE_SPECIFIED_CONFIG_NAMESPACE,
                "kube-apiserver-aggregator-client-ca",
            ),
            short_lived(TARGET_NAMESPACE, "aggregator-client", client("system:openshift-aggregator")),
        ),
        CertRotationSpec(
            "KubeAPIServerToKubeletClientCert",
            # Refresh beyond validity: this signer effectively never rotates.
            signer("kube-apiserver-to-kubelet-signer", 1 * _YEAR, 8 * _YEAR),
            CABundleConfigMap(OPERATOR_NAMESPACE, "kube-apiserver-to-kubelet-client-ca"),
            short_lived(
                TARGET_NAMESPACE,
                "kubelet-client",
                client("system:kube-apiserver", "kube-master"),
            ),
        ),
        CertRotationSpec(
            "LocalhostServing",
            signer("localhost-serving-signer", **long_lived_signer),
            CABundleConfigMap(OPERATOR_NAMESPACE, "localhost-serving-ca"),
            short_lived(
                TARGET_NAMESPACE,
                "localhost-serving-cert-certkey",
                _fixed_hostnames(["localhost", "127.0.0.1"]),
            ),
        ),
        CertRotationSpec(
            "ServiceNetworkServing",
            signer("service-network-serving-signer", **long_lived_signer),
            CABundleConfigMap(OPERATOR_NAMESPACE, "service-network-serving-ca"),
            short_lived(
                TARGET_NAMESPACE,
                "service-network-serving-certkey",
                _dynamic_hostnames(service_network),
            ),
        ),
        CertRotationSpec(
            "ExternalLoadBalancerServing",
            lb_signer,
            lb_bundle,
            short_lived(
                TARGET_NAMESPACE,
                "external-loadbalancer-serving-certkey",
                _dynamic_hostnames(external_load_balancer),
            ),
        ),
        CertRotationSpec(
            "InternalLoadBalancerServing",
            lb_signer,
            lb_bundle,
            short_lived(
                TARGET_NAMESPACE,
                "internal-loadbalancer-serving-certkey",
                _dynamic_hostnames(internal_load_balancer),
            ),
        ),
        CertRotationSpec(
            "LocalhostRecoveryServing",
            signer("localhost-recovery-serving-signer", only_expired=False, **long_lived_signer),
            CABundleConfigMap(OPERATOR_NAMESPACE, "localhost-recovery-serving-ca"),
            CertKeySecret(
                TARGET_NAMESPACE,
                "localhost-recovery-serving-certkey",
                10 * _YEAR,
                8 * _YEAR,
                _fixed_hostnames(["localhost-recovery"]),
            ),
        ),
        CertRotationSpec(
            "KubeControllerManagerClient",
            control_plane_signer,
            control_plane_bundle,
            short_lived(
                GLOBAL_MACHINE_SPECIFIED_CONFIG_NAMESPACE,
                "kube-controller-manager-client-cert-key",
                client("system:kube-controller-manager"),
            ),
        ),
        CertRotationSpec(
            "KubeSchedulerClient",
            control_plane_signer,
            control_plane_bundle,
            short_lived(
                GLOBAL_MACHINE_SPECIFIED_CONFIG_NAMESPACE,
                "kube-scheduler-client-cert-key",
                client("system:kube-scheduler"),
            ),
        ),
        CertRotationSpec(
            "ControlPlaneNodeAdminClient",
            control_plane_signer,
            control_plane_bundle,
            short_lived(
                TARGET_NAMESPACE,
                "control-plane-node-admin-client-cert-key",
                client("system:control-plane-node-admin", "system:masters"),
            ),
        ),
        CertRotationSpec(
            "CheckEndpointsClient",
            control_plane_signer,
            control_plane_bundle,
            short_lived(
                TARGET_NAMESPACE,
                "check-endpoints-client-cert-key",
                client("system:serviceaccount:openshift-kube-apiserver:check-endpoints"),
            ),
        ),
        CertRotationSpec(
            "NodeSystemAdminClient",
            signer("node-system-admin-signer", 1 * _YEAR, 292 * DEFAULT_ROTATION_DAY),
            CABundleConfigMap(OPERATOR_NAMESPACE, "node-system-admin-ca"),
            # Outlives the control plane certs so that a broken cluster can
            # still be inspected through the localhost-recovery endpoint.
            CertKeySecret(
                OPERATOR_NAMESPACE,
                "node-system-admin-client",
                120 * DEFAULT_ROTATION_DAY,
                30 * DEFAULT_ROTATION_DAY,
                client("system:admin", "system:masters"),
                roe,
            ),
        ),
    ]