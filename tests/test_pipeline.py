from hypothesis import given
from hypothesis import strategies as st

from inventory_fixtures import HOST, MIGRATED_VM, OTHER_HOST, VM, build_index
from xen_telemetry.core.types import AnomalyKind, EntityType, RawSample
from xen_telemetry.engine import EngineConfig, NormalizationEngine

UNKNOWN_VM = "ffffffff-0000-0000-0000-000000000000"


def make_batch():
    return {
        f"AVERAGE:host:{HOST}:memory_total_kib": "1000",
        f"AVERAGE:host:{HOST}:memory_free_kib": "250",
        f"AVERAGE:host:{HOST}:cpu_avg": "0.5",
        f"AVERAGE:vm:{VM}:vif_0_rx": "1.23456",
        f"AVERAGE:vm:{VM}:cpu0": "0.1",
        f"AVERAGE:vm:{VM}:cpu1": "0.3",
        f"AVERAGE:vm:{MIGRATED_VM}:cpu0": "0.9",
        f"AVERAGE:vm:{UNKNOWN_VM}:cpu0": "0.9",
        "not-a-key": "1",
        f"AVERAGE:host:{HOST}:loadavg": "NaN",
    }


def test_process_builds_prefixed_metric_sets(index):
    result = NormalizationEngine().process(HOST, make_batch(), index)

    assert result.owner == HOST
    assert result.metrics[HOST] == {
        "Component/memory/total[bytes]": 1000000.0,
        "Component/memory/free[bytes]": 250000.0,
        "Component/cpu/cpuAverage/Average CPU[%]": 50.0,
        "Component/memory/used[bytes]": 750000.0,
        "Component/memory_percent/used[%]": 75.0,
    }
    assert result.metrics[VM] == {
        "Component/network/eth/Pool-LAN (vif0)/rx[bits/second]": 9.88,
        "Component/cpu/byCpu/cpu0[%]": 10.0,
        "Component/cpu/byCpu/cpu1[%]": 30.0,
        "Component/network/total/rx[bits/second]": 9.88,
        "Component/cpu/cpuAverage/Average CPU[%]": 20.0,
    }
    assert result.entity_types == {HOST: EntityType.host, VM: EntityType.vm}


def test_process_records_anomalies_and_keeps_going(index):
    result = NormalizationEngine().process(HOST, make_batch(), index)

    assert result.count(AnomalyKind.decode_error) == 2
    assert result.count(AnomalyKind.unknown_entity) == 2
    assert result.count(AnomalyKind.label_miss) == 0
    assert result.count(AnomalyKind.computation_skip) == 0
    assert UNKNOWN_VM not in result.metrics


def test_migrated_vm_counts_only_for_its_residency_host(index):
    engine = NormalizationEngine()
    batch = {
        f"AVERAGE:vm:{MIGRATED_VM}:cpu0": "0.9",
        f"AVERAGE:vm:{VM}:cpu0": "0.1",
    }

    on_host = engine.process(HOST, batch, index)
    on_other = engine.process(OTHER_HOST, batch, index)

    assert set(on_host.metrics) == {VM}
    assert set(on_other.metrics) == {MIGRATED_VM}
    assert on_other.metrics[MIGRATED_VM]["Component/cpu/byCpu/cpu0[%]"] == 90.0


def test_process_is_deterministic(index):
    engine = NormalizationEngine()

    first = engine.process(HOST, make_batch(), index)
    second = engine.process(HOST, make_batch(), index)

    assert first.metrics == second.metrics
    assert first.anomalies == second.anomalies


def test_label_miss_and_computation_skip_are_reported(index):
    batch = {
        f"AVERAGE:vm:{VM}:vif_7_tx": "1",
        f"AVERAGE:vm:{VM}:memory": "4096",
    }

    result = NormalizationEngine().process(HOST, batch, index)

    assert result.metrics[VM]["Component/network/eth/Unnamed (vif7)/tx[bits/second]"] == 8.0
    assert result.metrics[VM]["Component/memory/total[bytes]"] == 4096.0
    assert "Component/memory/used[bytes]" not in result.metrics[VM]
    assert result.count(AnomalyKind.label_miss) == 1
    assert result.count(AnomalyKind.computation_skip) == 1


def test_custom_prefix_and_raw_samples(index):
    engine = NormalizationEngine(EngineConfig(prefix="Xen/"))
    samples = [RawSample(encoded_key=f"AVERAGE:host:{HOST}:pool_task_count", value=3.0)]

    result = engine.process_samples(HOST, samples, index)

    assert result.metrics == {HOST: {"Xen/pool/tasks[tasks]": 3.0}}


def test_empty_batch_yields_empty_result(index):
    result = NormalizationEngine().process(HOST, {}, index)

    assert result.metrics == {}
    assert result.anomalies == []


@given(st.lists(st.floats(min_value=0, max_value=1e6, allow_nan=False), min_size=1, max_size=8))
def test_identical_batches_normalize_identically(values):
    index = build_index()
    batch = {f"AVERAGE:vm:{VM}:cpu{i}": v for i, v in enumerate(values)}
    batch[f"AVERAGE:vm:{VM}:vif_0_tx"] = values[0]
    engine = NormalizationEngine()

    first = engine.process(HOST, batch, index)
    second = engine.process(HOST, dict(batch), index)

    assert first.metrics == second.metrics
    assert len(first.metrics[VM]) == len(values) + 3
