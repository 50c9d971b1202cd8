from __future__ import annotations

import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from recordsync.adapters.http_resilience import ResilientClient
from recordsync.adapters.profile import ProfileServiceClient, ProfileServiceTarget
from recordsync.config import ProfileServiceConfig, ResilienceConfig, RetryPolicy
from recordsync.domain.errors import TransportError, UnknownRecordTypeError
from recordsync.domain.model import DetailsAggregate, PlacementAggregate, Tombstone

BASE_URL = "https://profile.example.test"


def _profile_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> ProfileServiceClient:
    resilience = ResilienceConfig(name="profile", base_url=BASE_URL, retry=RetryPolicy(total=0))
    config = ProfileServiceConfig(base_url=BASE_URL, resilience=resilience)

    def factory(settings: ResilienceConfig) -> ResilientClient:
        return ResilientClient(settings, transport=httpx.MockTransport(handler))

    return ProfileServiceClient(config, client_factory=factory)


class Recorder:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={})

    @property
    def calls(self) -> list[tuple[str, str]]:
        return [(request.method, request.url.path) for request in self.requests]


def test_patch_sends_payload_as_json() -> None:
    recorder = Recorder()
    client = _profile_client(recorder)

    client.patch("placement", "t1", {"tisId": "p1", "isTrigger": True})

    assert recorder.calls == [("PATCH", "/api/placement/t1")]
    assert json.loads(recorder.requests[0].content) == {"tisId": "p1", "isTrigger": True}


def test_delete_with_and_without_member_id() -> None:
    recorder = Recorder(204)
    client = _profile_client(recorder)

    assert client.delete("programme-membership", "personA", "11") is True
    assert client.delete("programme-membership", "personA") is True

    assert recorder.calls == [
        ("DELETE", "/api/programme-membership/personA/11"),
        ("DELETE", "/api/programme-membership/personA"),
    ]


def test_delete_of_unknown_resource_returns_false() -> None:
    client = _profile_client(Recorder(404))

    assert client.delete("placement", "t1", "p1") is False


def test_error_status_raises_transport_error() -> None:
    client = _profile_client(Recorder(500))

    with pytest.raises(TransportError, match="500"):
        client.patch("placement", "t1", {})


def test_connection_failure_raises_transport_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _profile_client(refuse)

    with pytest.raises(TransportError):
        client.delete("placement", "t1")


def test_target_maps_record_types_to_api_paths() -> None:
    recorder = Recorder()
    target = ProfileServiceTarget(_profile_client(recorder))

    target.upsert(PlacementAggregate(record_type="Placement", member_id="p1", person_id="t1"))
    target.delete(Tombstone(record_type="CurriculumMembership", member_id="11", person_id="a"))
    target.invalidate_person("ProgrammeMembership", "a")

    assert recorder.calls == [
        ("PATCH", "/api/placement/t1"),
        ("DELETE", "/api/programme-membership/a/11"),
        ("DELETE", "/api/programme-membership/a"),
    ]
    assert "Placement" in target.record_types



def test_target_paths_for_person_details() -> None:
    recorder = Recorder()
    target = ProfileServiceTarget(_profile_client(recorder))
    qualification = DetailsAggregate(
        record_type="Qualification",
        member_id="q1",
        person_id="t1",
        details={"qualification": "MBBS"},
        person_attribute="personId",
    )

    target.upsert(qualification)
    target.delete(Tombstone(record_type="Qualification", member_id="q1", person_id="t1"))
    target.upsert(DetailsAggregate(record_type="Person", member_id="t1", person_id="t1"))
    target.invalidate_person("Person", "t1")

    assert recorder.calls == [
        ("PATCH", "/api/qualification/t1"),
        ("DELETE", "/api/qualification/t1/q1"),
        ("PATCH", "/api/basic-details/t1"),
        ("DELETE", "/api/trainee-profile/t1"),
    ]
    assert json.loads(recorder.requests[0].content)["qualification"] == "MBBS"


def test_target_skips_tombstone_without_person() -> None:
    recorder = Recorder()
    target = ProfileServiceTarget(_profile_client(recorder))

    target.delete(Tombstone(record_type="Placement", member_id="p1", person_id=None))

    assert recorder.requests == []


def test_target_rejects_unknown_record_type() -> None:
    target = ProfileServiceTarget(_profile_client(Recorder()))

    with pytest.raises(UnknownRecordTypeError):
        target.invalidate_person("Post", "t1")


def test_resilient_client_closes_on_exit() -> None:
    config = ResilienceConfig(name="profile", base_url=BASE_URL, retry=RetryPolicy(total=0))

    with ResilientClient(config, transport=httpx.MockTransport(Recorder())) as client:
        response = client.request("PATCH", "/api/placement/t1", json={})

    assert response.status_code == 200
    assert client._client.is_closed  # noqa: SLF001  # type: ignore[reportPrivateUsage]
