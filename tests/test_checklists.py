"""Tests for enriching observations with checklist metadata."""

from __future__ import annotations

import threading
import time
from unittest.mock import patch

import pytest
import requests

from bird_sightings import checklists
from bird_sightings.errors import PartialRecordError
from bird_sightings.observations import parse_observations

TOKEN = "test-token"

CHECKLIST_S100 = {
    "subId": "S100",
    "userDisplayName": "Jane Birder",
    "obsDt": "2024-05-01 07:15",
    "locId": "L123",
    "obs": [],
}


def checklist_router(response_factory, checklists_by_id: dict, calls: list | None = None):
    """Fake ``session.get`` answering /product/checklist/view/{subId}."""

    def fake_get(url, **kwargs):
        sub_id = url.rsplit("/", 1)[-1]
        if calls is not None:
            calls.append(sub_id)
        if sub_id not in checklists_by_id:
            return response_factory({"errors": [{"status": "404"}]}, status=404)
        return response_factory(checklists_by_id[sub_id])

    return fake_get


class TestGetChecklistDetails:
    def test_success(self, response_factory) -> None:
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.return_value = response_factory(CHECKLIST_S100)
            meta = checklists.get_checklist_details(TOKEN, "S100")

        assert meta.observer_name == "Jane Birder"
        assert meta.checklist_date == "2024-05-01 07:15"
        url = mock_session.get.call_args.args[0]
        assert url.endswith("/product/checklist/view/S100")
        assert mock_session.get.call_args.kwargs["headers"] == {"X-eBirdApiToken": TOKEN}

    def test_not_found(self, response_factory) -> None:
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.return_value = response_factory({}, status=404)
            with pytest.raises(PartialRecordError):
                checklists.get_checklist_details(TOKEN, "S999")

    def test_malformed_payload(self, response_factory) -> None:
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.return_value = response_factory(["not", "an", "object"])
            with pytest.raises(PartialRecordError):
                checklists.get_checklist_details(TOKEN, "S100")

    def test_network_error(self) -> None:
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.side_effect = requests.ConnectionError("reset")
            with pytest.raises(PartialRecordError):
                checklists.get_checklist_details(TOKEN, "S100")


class TestFetchChecklistMetadata:
    def test_one_lookup_per_distinct_id(self, response_factory) -> None:
        calls: list[str] = []
        ids = ["S100", "S200", "S100", "S300", "S200", "S100"]
        router = checklist_router(response_factory, {"S100": CHECKLIST_S100}, calls)
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.side_effect = router
            metadata = checklists.fetch_checklist_metadata(TOKEN, ids)

        assert sorted(calls) == ["S100", "S200", "S300"]
        assert list(metadata) == ["S100", "S200", "S300"]
        assert metadata["S100"].observer_name == "Jane Birder"
        assert metadata["S200"] is None
        assert metadata["S300"] is None

    def test_empty_batch_makes_no_calls(self) -> None:
        with patch.object(checklists, "session") as mock_session:
            assert checklists.fetch_checklist_metadata(TOKEN, []) == {}
        mock_session.get.assert_not_called()

    def test_lookups_run_concurrently(self, response_factory) -> None:
        active = 0
        peak = 0
        lock = threading.Lock()

        def slow_get(url, **kwargs):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.05)
            with lock:
                active -= 1
            return response_factory({"subId": url.rsplit("/", 1)[-1], "userDisplayName": "x"})

        with patch.object(checklists, "session") as mock_session:
            mock_session.get.side_effect = slow_get
            checklists.fetch_checklist_metadata(TOKEN, ["S1", "S2", "S3", "S4"])

        assert peak > 1

    def test_one_failure_does_not_block_others(self, response_factory) -> None:
        def flaky_get(url, **kwargs):
            if url.endswith("S200"):
                raise requests.Timeout("timed out")
            return response_factory(CHECKLIST_S100)

        with patch.object(checklists, "session") as mock_session:
            mock_session.get.side_effect = flaky_get
            metadata = checklists.fetch_checklist_metadata(TOKEN, ["S100", "S200"])

        assert metadata["S100"] is not None
        assert metadata["S200"] is None


class TestEnrichObservations:
    def test_failed_lookup_falls_back_to_anonymous(self, response_factory, sample_observations) -> None:
        raw = parse_observations(sample_observations)
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.side_effect = checklist_router(response_factory, {"S100": CHECKLIST_S100})
            enriched = checklists.enrich_observations(TOKEN, raw)

        assert len(enriched) == 3
        assert [obs.observer_name for obs in enriched] == ["Jane Birder", "Jane Birder", "Anonymous"]
        # S200 failed: its observation keeps its own date
        assert enriched[2].checklist_date == "2024-04-29"
        # S100 resolved: checklist date comes from the checklist
        assert enriched[0].checklist_date == "2024-05-01 07:15"

    def test_missing_observer_name(self, response_factory, sample_observations) -> None:
        raw = parse_observations(sample_observations[:1])
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.return_value = response_factory({"subId": "S100"})
            enriched = checklists.enrich_observations(TOKEN, raw)

        assert enriched[0].observer_name == "Anonymous"
        assert enriched[0].checklist_date == "2024-05-01 07:30"

    def test_preserves_observation_fields(self, response_factory, sample_observations) -> None:
        raw = parse_observations(sample_observations)
        with patch.object(checklists, "session") as mock_session:
            mock_session.get.side_effect = checklist_router(response_factory, {})
            enriched = checklists.enrich_observations(TOKEN, raw)

        for before, after in zip(raw, enriched):
            assert after.species_code == before.species_code
            assert after.count == before.count
            assert after.checklist_id == before.checklist_id
