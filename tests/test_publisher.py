import pytest

from inventory_fixtures import HOST, VM
from xen_telemetry.core.errors import PublishFailed, TransportError
from xen_telemetry.core.http import HttpResponse
from xen_telemetry.core.types import CycleResult, EntityType
from xen_telemetry.publish.publisher import (
    PublisherConfig,
    SinkPublisher,
    build_envelope,
    component_name,
)


class FakeHttp:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.posts = []

    def get_text(self, url, headers):
        raise AssertionError("not used")

    def post_json(self, url, payload, headers):
        self.posts.append((url, payload, headers))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_result():
    return CycleResult(
        owner=HOST,
        metrics={
            HOST: {"Component/cpu/cpuAverage/Average CPU[%]": 50.0},
            VM: {"Component/cpu/byCpu/cpu0[%]": 10.0},
        },
        entity_types={HOST: EntityType.host, VM: EntityType.vm},
    )


def make_publisher(outcomes, **overrides):
    http = FakeHttp(outcomes)
    sleeps = []
    config = PublisherConfig(license_key="key-123", agent_host="collector", **overrides)
    return SinkPublisher(config=config, http=http, sleep=sleeps.append), http, sleeps


def test_component_names(index):
    assert component_name(HOST, index) == "Host: xen01"
    assert component_name(VM, index) == "VM: web-01"
    assert component_name("gone", index) == "gone"
    assert component_name("gone", index, EntityType.vm) == "VM: gone"


def test_build_envelope_one_component_per_entity(index):
    config = PublisherConfig(agent_host="collector", guid="com.example.xen")

    envelope = build_envelope([make_result()], index, config)

    assert envelope["agent"] == {"host": "collector", "version": "1.0.1"}
    assert envelope["components"] == [
        {
            "name": "Host: xen01",
            "guid": "com.example.xen",
            "duration": 60,
            "metrics": {"Component/cpu/cpuAverage/Average CPU[%]": 50.0},
        },
        {
            "name": "VM: web-01",
            "guid": "com.example.xen",
            "duration": 60,
            "metrics": {"Component/cpu/byCpu/cpu0[%]": 10.0},
        },
    ]


def test_publish_posts_with_license_header(index):
    publisher, http, sleeps = make_publisher([HttpResponse(status=200, body="{}")])

    resp = publisher.publish([make_result()], index)

    assert resp.status == 200
    url, payload, headers = http.posts[0]
    assert url == PublisherConfig().sink_url
    assert headers["X-License-Key"] == "key-123"
    assert len(payload["components"]) == 2
    assert sleeps == []


def test_publish_retries_transport_and_server_errors(index):
    publisher, http, sleeps = make_publisher(
        [TransportError("reset"), HttpResponse(status=503, body=""), HttpResponse(status=200, body="")]
    )

    assert publisher.publish([make_result()], index).ok
    assert len(http.posts) == 3
    assert sleeps == [1.0, 2.0]


def test_publish_gives_up_after_max_attempts(index):
    publisher, http, sleeps = make_publisher(
        [HttpResponse(status=500, body="")] * 2, max_attempts=2, retry_delay_seconds=0.5
    )

    with pytest.raises(PublishFailed):
        publisher.publish([make_result()], index)
    assert sleeps == [0.5]


def test_publish_does_not_retry_client_errors(index):
    publisher, http, sleeps = make_publisher([HttpResponse(status=403, body="bad key")])

    with pytest.raises(PublishFailed):
        publisher.publish([make_result()], index)
    assert len(http.posts) == 1


def test_publish_skips_empty_cycles(index):
    publisher, http, _ = make_publisher([])

    assert publisher.publish([CycleResult(owner=HOST)], index) is None
    assert http.posts == []


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("XEN_TELEMETRY_SINK_URL", "http://sink.local/metrics")
    monkeypatch.setenv("XEN_TELEMETRY_LICENSE_KEY", "abc")
    monkeypatch.delenv("XEN_TELEMETRY_AGENT_HOST", raising=False)

    config = PublisherConfig.from_env()

    assert config.sink_url == "http://sink.local/metrics"
    assert config.license_key == "abc"
    assert config.agent_host == "localhost"


def test_envelope_names_entities_missing_from_inventory_by_cycle_type(index):
    result = CycleResult(
        owner=HOST,
        metrics={"vm-removed": {"Component/cpu/byCpu/cpu0[%]": 1.0}},
        entity_types={"vm-removed": EntityType.vm},
    )

    envelope = build_envelope([result], index, PublisherConfig())

    assert envelope["components"][0]["name"] == "VM: vm-removed"
