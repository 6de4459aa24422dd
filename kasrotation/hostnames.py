"""Hostnames that the kube-apiserver serving certificates must cover."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

_CLUSTER_DOMAIN = "cluster.local"

BASE_SERVICE_HOSTNAMES = (
    "kubernetes",
    "kubernetes.default",
    "kubernetes.default.svc",
    "openshift",
    "openshift.default",
    "openshift.default.svc",
    # The DNS operator does not allow the cluster domain to change.
    "kubernetes.default.svc." + _CLUSTER_DOMAIN,
    "openshift.default.svc." + _CLUSTER_DOMAIN,
)


def _first_host(cidr: str) -> str:
    if "/" not in cidr:
        raise ValueError(f"invalid CIDR address: {cidr}")
    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError as exc:
        raise ValueError(f"invalid CIDR address: {cidr}") from exc
    if network.num_addresses < 2:
        raise ValueError(f"prefix {cidr} does not accommodate host number 1")
    return str(network.network_address + 1)


def service_hostnames(service_networks: Iterable[str]) -> list[str]:
    """Sorted service hostnames plus the first host IP of each service network.

    Raises ``ValueError`` for a malformed CIDR or one too small to hold a host.
    """
    names = set(BASE_SERVICE_HOSTNAMES)
    for cidr in service_networks:
        names.add(_first_host(cidr))
    result = sorted(names)
    logger.debug("syncing servicenetwork hostnames: %s", result)
    return result


def _strip_scheme(url: str) -> str:
    return url.replace("https://", "", 1)


def external_load_balancer_hostname(api_server_url: str) -> str | None:
    """Host part of the external API server URL, or None when it is unset."""
    if not api_server_url:
        logger.warning("Failed to set external loadbalancer: APIServerURL is not set")
        return None
    hostname = _strip_scheme(api_server_url).split(":")[0]
    logger.debug("syncing external loadbalancer hostnames: %s", hostname)
    return hostname


def internal_load_balancer_hostname(api_server_internal_url: str) -> str | None:
    """Host part of the internal API server URL, or None when it is unset.

    Everything before the last colon is kept; a URL without a port raises
    ``ValueError``.
    """
    if not api_server_internal_url:
        logger.warning(
            "Failed to set internal loadbalancer: APIServerInternalURL is not set"
        )
        return None
    hostname = _strip_scheme(api_server_internal_url)
    colon = hostname.rfind(":")
    if colon < 0:
        raise ValueError(
            f"APIServerInternalURL {api_server_internal_url!r} has no port"
        )
    hostname = hostname[:colon]
    logger.debug("syncing internal loadbalancer hostnames: %s", hostname)
    return hostname