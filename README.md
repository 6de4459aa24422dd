# kasrotation

Plans and drives certificate rotation for a Kubernetes API server operator. It
also keeps the serving hostnames of the dynamic serving certificates up to date
and reports whether an unsupported rotation base blocks upgrades. Finally, it
describes the cluster configuration as gauge values.

The package has no third-party dependencies.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `kasrotation.dynamic_serving`

`DynamicServingRotation` is a thread-safe holder for a list of serving
hostnames.

- `set_hostnames(hostnames)` stores the new list. If the set of names has
  changed, it also puts a signal on the bounded queue `hostnames_changed`.
  An unchanged set is ignored.
- `is_same(hostnames)` compares a list with the stored one as a set.
- `get_hostnames()` returns a copy of the current list.

### `kasrotation.hostnames`

- `service_hostnames(service_networks)` returns the well-known in-cluster
  service names together with the first host address of each service CIDR,
  sorted. The service names are `kubernetes`, `kubernetes.default`,
  `kubernetes.default.svc`, `kubernetes.default.svc.cluster.local` and the
  same four for `openshift`. It raises `ValueError` for a malformed CIDR, or
  for one too small to hold a host.
- `external_load_balancer_hostname(api_server_url)` drops `https://` and
  returns everything before the first colon. It returns `None` when the URL
  is empty.
- `internal_load_balancer_hostname(api_server_internal_url)` drops `https://`
  and returns everything before the last colon. It returns `None` when the
  URL is empty, and raises `ValueError` when there is no port.

### `kasrotation.specs`

- `rotation_base(day)` returns `day` when it is set. Otherwise it returns one
  day divided by 60.
- `cert_rotation_specs(day, refresh_only_when_expired, service_network,
  external_load_balancer, internal_load_balancer)` returns the list of
  `CertRotationSpec` records. There is one record for every rotated signer, CA
  bundle and certificate/key pair, in the order their rotators start. The
  records are built from these dataclasses:
  - `SigningCASecret`
  - `CABundleConfigMap`
  - `CertKeySecret`
  - `ClientRotation`
  - `ServingRotation`
  - `UserInfo`

  The serving certificates for the service network and the two load balancers
  take their hostnames from the `DynamicServingRotation` objects passed in.

### `kasrotation.controller`

`CertRotationController` turns every spec into a rotator through a
caller-supplied `rotator_factory`. It also keeps the dynamic hostnames current
from two lister callables:

- `network_lister(name)` returns an object with a `service_network` list of
  CIDRs.
- `infrastructure_lister(name)` returns an object with `api_server_url` and
  `api_server_internal_url`.

Build a controller with one of these:

- `new_cert_rotation_controller(network_lister, infrastructure_lister,
  rotator_factory, day=None)`
- `new_cert_rotation_controller_only_when_expired(...)`, which marks the
  specs to refresh only once certificates have expired.

The controller provides these methods:

- `sync_service_hostnames()`, `sync_external_load_balancer_hostnames()` and
  `sync_internal_load_balancer_hostnames()` read the listers and update the
  hostnames.
- `enqueue_*_hostnames()` are event handlers. Each one queues a sync.
- `process_*_hostnames()` handles one queued item. A failed sync is logged
  and retried with exponential back-off.
- `wait_for_ready()` syncs all hostnames once and raises on any failure.
- `run_once()` calls `sync(True)` on every rotator. It raises
  `AggregateError`, which carries the collected `errors`, if any rotator fails.
- `run(stop_event, workers)` starts the hostname workers. It then calls
  `run(stop_event, workers)` for each rotator on a thread of its own and
  blocks until `stop_event` is set.

### `kasrotation.upgradeable`

- `new_upgradeable_condition(config_map)` returns an `OperatorCondition` of
  type `CertRotationTimeUpgradeable`:
  - `ConditionStatus.TRUE` with reason `DefaultCertRotationBase` when the
    config map is absent or its `base` entry is empty;
  - `ConditionStatus.FALSE` with reason `CertRotationBaseOverridden` and a
    message naming the override otherwise.
- `CertRotationTimeUpgradeableController(get_config_map, update_condition)`
  has a `sync()` method. It looks up
  `openshift-config/unsupported-cert-rotation-config` through
  `get_config_map`, which may raise `NotFoundError`. It then stores the
  resulting condition through `update_condition` and returns it.

### `kasrotation.config_metrics`

`ConfigMetrics(infrastructure, feature_set, proxy)` takes three getters:

- `infrastructure` returns a `PlatformStatus` or `None`;
- `feature_set` returns the feature set name;
- `proxy` returns a `ProxySpec`.

The collector has these methods:

- `describe()` returns the `GaugeDesc` records for
  `cluster_infrastructure_provider`, `cluster_feature_set` and
  `cluster_proxy_enabled`.
- `collect()` yields `Gauge` values. A getter that raises leaves its metrics
  out of the result.
- `create(version)`, `clear_state()` and `fq_name()` complete the collector
  interface.

## What the package does not do

The package does not sign, store or inspect certificates itself; that is the
job of the rotators that `rotator_factory` returns. It has no client for a
cluster API: the listers, the config map getter and the condition updater are
callables you supply. There is no command-line program and no metrics HTTP
endpoint.

## Example

```python
from kasrotation.hostnames import internal_load_balancer_hostname, service_hostnames
from kasrotation.upgradeable import ConfigMap, new_upgradeable_condition

print(service_hostnames(["172.30.0.0/16"]))
print(internal_load_balancer_hostname("https://api-int.cluster.example.com:6443"))

condition = new_upgradeable_condition(ConfigMap(data={"base": "2y"}))
print(condition.status.value, condition.reason)
```