import pytest

from inventory_fixtures import HOST, MIGRATED_VM, OTHER_HOST, VM
from xen_telemetry.core.errors import KeyDecodeError
from xen_telemetry.core.types import EntityType, SampleMode
from xen_telemetry.engine.decoder import admit_sample, decode_key, parse_value


def test_decode_key_splits_fields_and_path():
    decoded = decode_key(f"AVERAGE:vm:{VM}:vbd_xvda_io_throughput_read")

    assert decoded.mode == SampleMode.average
    assert decoded.entity_type == EntityType.vm
    assert decoded.entity_id == VM
    assert decoded.path_segments == ("vbd", "xvda", "io", "throughput", "read")
    assert decoded.segment(4) == "read"
    assert decoded.segment(5) is None


@pytest.mark.parametrize(
    "key",
    [
        f"AVERAGE:host:{HOST}",
        f"AVERAGE:host:{HOST}:",
        f"MEDIAN:host:{HOST}:cpu0",
        f"AVERAGE:sr:{HOST}:cpu0",
        "AVERAGE:host::cpu0",
        "garbage",
    ],
)
def test_decode_key_rejects_malformed_keys(key):
    with pytest.raises(KeyDecodeError):
        decode_key(key)


def test_parse_value_accepts_text_and_rejects_nan():
    assert parse_value("1.2340E+02") == 123.4
    assert parse_value(3) == 3.0

    with pytest.raises(KeyDecodeError):
        parse_value("NaN")
    with pytest.raises(KeyDecodeError):
        parse_value("abc")


def test_admit_sample_requires_known_entities(index):
    assert admit_sample(decode_key(f"AVERAGE:host:{HOST}:cpu0"), HOST, index) is None
    assert admit_sample(decode_key(f"AVERAGE:vm:{VM}:cpu0"), HOST, index) is None

    unknown_vm = decode_key("AVERAGE:vm:ffffffff-0000-0000-0000-000000000000:cpu0")
    assert admit_sample(unknown_vm, HOST, index) == "vm not in inventory"

    unknown_host = decode_key("AVERAGE:host:ffffffff-0000-0000-0000-000000000000:cpu0")
    assert admit_sample(unknown_host, HOST, index) == "host not in inventory"


def test_admit_sample_rejects_vm_resident_on_another_host(index):
    decoded = decode_key(f"AVERAGE:vm:{MIGRATED_VM}:cpu0")

    assert admit_sample(decoded, HOST, index) is not None
    assert admit_sample(decoded, OTHER_HOST, index) is None
