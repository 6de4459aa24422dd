import threading
from types import SimpleNamespace

import pytest

from kasrotation.controller import (
    AggregateError,
    new_cert_rotation_controller,
    new_cert_rotation_controller_only_when_expired,
)
from kasrotation.hostnames import service_hostnames


class FakeRotator:
    def __init__(self, spec, error=None, started=None):
        self.spec = spec
        self.error = error
        self.sync_calls = []
        self.run_calls = []
        self.started = started

    def sync(self, run_once):
        self.sync_calls.append(run_once)
        if self.error is not None:
            raise self.error

    def run(self, stop_event, workers):
        self.run_calls.append(workers)
        if self.started is not None:
            self.started.release()
        stop_event.wait()


def network(*cidrs):
    return lambda name: SimpleNamespace(service_network=list(cidrs))


def infrastructure(url="https://api.example.com:6443", internal="https://api-int.example.com:6443"):
    return lambda name: SimpleNamespace(api_server_url=url, api_server_internal_url=internal)


def make_controller(net=None, infra=None, factory=FakeRotator):
    return new_cert_rotation_controller(
        net or network("10.0.0.0/16"), infra or infrastructure(), factory
    )


def test_one_rotator_per_spec_in_order():
    received = []

    def factory(spec):
        received.append(spec)
        return FakeRotator(spec)

    controller = make_controller(factory=factory)
    assert received == controller.specs
    assert [r.spec for r in controller.rotators] == received
    assert received[0].name == "AggregatorProxyClientCert"
    assert received[-1].name == "NodeSystemAdminClient"


def test_refresh_mode_follows_constructor():
    normal = make_controller()
    only_expired = new_cert_rotation_controller_only_when_expired(
        network("10.0.0.0/16"), infrastructure(), FakeRotator
    )
    assert normal.specs[0].target.refresh_only_when_expired is False
    assert only_expired.specs[0].target.refresh_only_when_expired is True
    recovery = {s.name: s for s in only_expired.specs}["LocalhostRecoveryServing"]
    assert recovery.target.refresh_only_when_expired is False


def test_service_hostnames_sync_sets_and_signals():
    controller = make_controller(net=network("172.30.0.0/16"))
    controller.sync_service_hostnames()
    assert controller.service_network.get_hostnames() == service_hostnames(["172.30.0.0/16"])
    assert "kubernetes.default.svc.cluster.local" in controller.service_network.get_hostnames()
    assert controller.service_network.hostnames_changed.qsize() == 1


def test_dynamic_serving_spec_sees_synced_hostnames():
    controller = make_controller()
    controller.sync_service_hostnames()
    spec = {s.name: s for s in controller.specs}["ServiceNetworkServing"]
    assert spec.target.cert_creator.hostnames() == controller.service_network.get_hostnames()


def test_service_hostnames_invalid_cidr_raises():
    controller = make_controller(net=network("not-a-cidr"))
    with pytest.raises(ValueError):
        controller.sync_service_hostnames()
    assert controller.service_network.get_hostnames() == []


def test_lister_error_propagates():
    def failing(name):
        raise LookupError("cluster not found")

    controller = make_controller(net=failing)
    with pytest.raises(LookupError):
        controller.sync_service_hostnames()


def test_external_load_balancer_hostname_sync():
    controller = make_controller(infra=infrastructure(url="https://api.example.com:6443"))
    controller.sync_external_load_balancer_hostnames()
    assert controller.external_load_balancer.get_hostnames() == ["api.example.com"]


def test_external_load_balancer_unset_leaves_hostnames():
    controller = make_controller(infra=infrastructure(url=""))
    controller.sync_external_load_balancer_hostnames()
    assert controller.external_load_balancer.get_hostnames() == []
    assert controller.external_load_balancer.hostnames_changed.empty()


def test_internal_load_balancer_hostname_sync():
    controller = make_controller(infra=infrastructure(internal="https://api-int.example.com:6443"))
    controller.sync_internal_load_balancer_hostnames()
    assert controller.internal_load_balancer.get_hostnames() == ["api-int.example.com"]


def test_internal_load_balancer_unset_leaves_hostnames():
    controller = make_controller(infra=infrastructure(internal=""))
    controller.sync_internal_load_balancer_hostnames()
    assert controller.internal_load_balancer.get_hostnames() == []


def test_wait_for_ready_syncs_everything():
    controller = make_controller()
    controller.wait_for_ready()
    assert controller.service_network.get_hostnames() == service_hostnames(["10.0.0.0/16"])
    assert controller.external_load_balancer.get_hostnames() == ["api.example.com"]
    assert controller.internal_load_balancer.get_hostnames() == ["api-int.example.com"]


def test_wait_for_ready_raises_on_failure():
    controller = make_controller(net=network("bogus"))
    with pytest.raises(ValueError):
        controller.wait_for_ready()


def test_run_once_calls_every_rotator_in_run_once_mode():
    controller = make_controller()
    assert controller.run_once() is None
    assert all(r.sync_calls == [True] for r in controller.rotators)


def test_run_once_aggregates_errors():
    errors = [RuntimeError("first"), RuntimeError("second")]
    pending = list(errors)

    def factory(spec):
        return FakeRotator(spec, error=pending.pop(0) if pending else None)

    controller = make_controller(factory=factory)
    with pytest.raises(AggregateError) as info:
        controller.run_once()
    assert info.value.errors == errors
    assert str(info.value) == "[first, second]"
    assert all(r.sync_calls == [True] for r in controller.rotators)


def test_aggregate_error_single_message():
    err = AggregateError([ValueError("only one")])
    assert str(err) == "only one"


def test_process_after_enqueue_syncs():
    controller = make_controller()
    controller.enqueue_external_load_balancer_hostnames()
    assert controller.process_external_load_balancer_hostnames() is True
    assert controller.external_load_balancer.get_hostnames() == ["api.example.com"]


def test_process_retries_failed_sync():
    calls = []

    def flaky(name):
        calls.append(name)
        if len(calls) == 1:
            raise LookupError("not yet")
        return SimpleNamespace(service_network=["10.0.0.0/16"])

    controller = make_controller(net=flaky)
    controller.enqueue_service_hostnames()
    assert controller.process_service_hostnames() is True
    assert controller.service_network.get_hostnames() == []
    # The failed key comes back after a short back-off.
    assert controller.process_service_hostnames() is True
    assert len(calls) == 2
    assert controller.service_network.get_hostnames() == service_hostnames(["10.0.0.0/16"])


def test_run_starts_rotators_and_stops():
    started = threading.Semaphore(0)

    def factory(spec):
        return FakeRotator(spec, started=started)

    controller = make_controller(factory=factory)
    stop = threading.Event()
    runner = threading.Thread(target=controller.run, args=(stop, 3))
    runner.start()
    for _ in controller.rotators:
        assert started.acquire(timeout=5)
    stop.set()
    runner.join(timeout=5)
    assert not runner.is_alive()
    assert all(r.run_calls == [3] for r in controller.rotators)
    assert controller.external_load_balancer.get_hostnames() == ["api.example.com"]
    assert controller.process_service_hostnames() is False
    assert controller.process_internal_load_balancer_hostnames() is False