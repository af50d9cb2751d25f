from inventory_fixtures import HOST, OTHER_HOST, VM, build_index
from xen_telemetry.agent.runner import RunnerConfig, TelemetryRunner
from xen_telemetry.core.errors import PublishFailed, SampleSourceError
from xen_telemetry.core.http import HttpResponse
from xen_telemetry.inventory.index import InventoryIndex


class FakeInventoryPlugin:
    def __init__(self, index):
        self.index = index
        self.loads = 0

    def load(self):
        self.loads += 1
        return self.index


class FakeSource:
    def __init__(self, batches):
        self.batches = batches

    def fetch(self, host):
        batch = self.batches.get(host.uuid)
        if batch is None:
            raise SampleSourceError(f"no route to {host.address}")
        return batch


class FakePublisher:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    def publish(self, results, index):
        if self.fail:
            raise PublishFailed("sink down")
        self.published.append(list(results))
        return HttpResponse(status=200, body="")


def make_runner(batches, publisher=None, config=None):
    return TelemetryRunner(
        inventory_plugin=FakeInventoryPlugin(build_index()),
        source=FakeSource(batches),
        publisher=publisher or FakePublisher(),
        config=config,
    )


def make_batches():
    return {
        HOST: {
            f"AVERAGE:host:{HOST}:cpu_avg": "0.5",
            f"AVERAGE:vm:{VM}:cpu0": "0.1",
        },
        OTHER_HOST: {f"AVERAGE:host:{OTHER_HOST}:loadavg": "0.2"},
    }


def test_cycle_before_refresh_does_nothing():
    publisher = FakePublisher()
    runner = make_runner(make_batches(), publisher)

    summary = runner.run_cycle()

    assert isinstance(runner.index, InventoryIndex)
    assert summary.results == []
    assert publisher.published == []


def test_cycle_normalizes_every_host_and_publishes_once():
    publisher = FakePublisher()
    runner = make_runner(make_batches(), publisher)
    runner.refresh_inventory()

    summary = runner.run_cycle()

    assert [r.owner for r in summary.results] == [HOST, OTHER_HOST]
    assert summary.failed_hosts == []
    assert summary.published is True
    assert len(publisher.published) == 1
    assert summary.results[0].metrics[VM] == {
        "Component/cpu/byCpu/cpu0[%]": 10.0,
        "Component/cpu/cpuAverage/Average CPU[%]": 10.0,
    }


def test_failed_host_does_not_affect_others():
    batches = make_batches()
    del batches[OTHER_HOST]
    runner = make_runner(batches)
    runner.refresh_inventory()

    summary = runner.run_cycle()

    assert summary.failed_hosts == [OTHER_HOST]
    assert [r.owner for r in summary.results] == [HOST]


def test_publish_failure_is_reported_not_raised():
    runner = make_runner(make_batches(), FakePublisher(fail=True))
    runner.refresh_inventory()

    summary = runner.run_cycle()

    assert summary.published is False
    assert len(summary.results) == 2


def test_parallel_cycle_matches_sequential():
    sequential = make_runner(make_batches(), config=RunnerConfig(publish=False))
    parallel = make_runner(make_batches(), config=RunnerConfig(max_workers=4, publish=False))
    sequential.refresh_inventory()
    parallel.refresh_inventory()

    first = sequential.run_cycle()
    second = parallel.run_cycle()

    assert [r.metrics for r in first.results] == [r.metrics for r in second.results]
    assert second.published is False


def test_anomaly_count_sums_results():
    batches = make_batches()
    batches[HOST]["broken"] = "1"
    runner = make_runner(batches, config=RunnerConfig(publish=False))
    runner.refresh_inventory()

    assert runner.run_cycle().anomaly_count == 1
