import pytest

from kasrotation.hostnames import (
    BASE_SERVICE_HOSTNAMES,
    external_load_balancer_hostname,
    internal_load_balancer_hostname,
    service_hostnames,
)


def test_service_hostnames_without_networks_are_the_base_names_sorted():
    result = service_hostnames([])
    assert result == sorted(BASE_SERVICE_HOSTNAMES)
    assert "kubernetes.default.svc.cluster.local" in result
    assert "openshift.default.svc.cluster.local" in result


def test_service_hostnames_adds_first_host_ipv4():
    result = service_hostnames(["172.30.0.0/16"])
    assert "172.30.0.1" in result
    assert len(result) == len(BASE_SERVICE_HOSTNAMES) + 1
    assert result == sorted(result)


def test_service_hostnames_ignores_host_bits():
    assert service_hostnames(["172.30.5.7/16"]) == service_hostnames(["172.30.0.0/16"])


def test_service_hostnames_adds_first_host_ipv6():
    result = service_hostnames(["fd02::/112"])
    assert "fd02::1" in result


def test_service_hostnames_dual_stack_keeps_both():
    both = service_hostnames(["172.30.0.0/16", "fd02::/112"])
    assert set(service_hostnames(["172.30.0.0/16"])) <= set(both)
    assert set(service_hostnames(["fd02::/112"])) <= set(both)
    assert len(both) == len(BASE_SERVICE_HOSTNAMES) + 2


@pytest.mark.parametrize("cidr", ["not-a-cidr", "10.0.0.1", "10.0.0.0/40", "10.0.0.1/32"])
def test_service_hostnames_rejects_bad_cidr(cidr):
    with pytest.raises(ValueError):
        service_hostnames([cidr])


def test_external_hostname_strips_scheme_and_port():
    host = "api.cluster.example.com"
    assert external_load_balancer_hostname(f"https://{host}:6443") == host


def test_external_hostname_without_port():
    host = "api.cluster.example.com"
    assert external_load_balancer_hostname(f"https://{host}") == host


def test_external_hostname_unset_is_none():
    assert external_load_balancer_hostname("") is None


def test_internal_hostname_strips_scheme_and_port():
    host = "api-int.cluster.example.com"
    assert internal_load_balancer_hostname(f"https://{host}:6443") == host


def test_internal_hostname_keeps_everything_before_last_colon():
    host = "a:b"
    assert internal_load_balancer_hostname(f"https://{host}:6443") == host


def test_internal_hostname_unset_is_none():
    assert internal_load_balancer_hostname("") is None


def test_internal_hostname_without_port_raises():
    with pytest.raises(ValueError):
        internal_load_balancer_hostname("https://api-int.cluster.example.com")