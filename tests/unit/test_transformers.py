"""
Unit tests for the object enricher
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import BulkResponseMismatchError, NetworkError, RequestLimitError, RPCError
from ingestion.transformers.object_enricher import ObjectEnricher, QUERY_OPTIONS
from models.base import StepStatus
from schemas.sui import PastObjectRequest, PastObjectResponse


def missing(status: str, details=None) -> PastObjectResponse:
    return PastObjectResponse.model_validate({"status": status, "details": details})


@pytest.fixture
def sui():
    client = MagicMock()
    client.try_multi_get_past_objects = AsyncMock()
    client.try_get_past_object = AsyncMock()
    return client


class TestEnrichBatch:
    """Test partitioning, bulk lookup and fallback"""

    @pytest.mark.asyncio
    async def test_pass_through_items_come_first(self, sui, make_event, found, drain):
        batch = [
            make_event("created", "0xa", 2),
            make_event("transferred", "0xb", 7),
            make_event("mutated", "0xc", 4),
            make_event("deleted", "0xd", 9),
        ]
        sui.try_multi_get_past_objects.return_value = [found("0xa", 2), found("0xc", 4)]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        results = await drain(enricher.enrich_batch(batch))

        assert [(status, item.object_id) for status, item in results] == [
            (StepStatus.OK, "0xb"),
            (StepStatus.OK, "0xd"),
            (StepStatus.OK, "0xa"),
            (StepStatus.OK, "0xc"),
        ]
        assert results[0][1].object is None
        assert results[1][1].object is None
        assert results[2][1].object.object_id == "0xa"
        assert results[3][1].object.version == 4

    @pytest.mark.asyncio
    async def test_bulk_request_uses_ids_versions_and_options(self, sui, make_event, found, drain):
        batch = [make_event("created", "0xa", 2), make_event("published", "0xp", 1)]
        sui.try_multi_get_past_objects.return_value = [found("0xa", 2), found("0xp", 1)]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        await drain(enricher.enrich_batch(batch))

        sui.try_multi_get_past_objects.assert_awaited_once_with(
            [PastObjectRequest(object_id="0xa", version=2), PastObjectRequest(object_id="0xp", version=1)],
            QUERY_OPTIONS
        )
        sui.try_get_past_object.assert_not_awaited()

    def test_query_options(self):
        assert QUERY_OPTIONS.to_params() == {
            "showType": True,
            "showOwner": True,
            "showPreviousTransaction": True,
            "showDisplay": False,
            "showContent": True,
            "showBcs": True,
            "showStorageRebate": True,
        }

    @pytest.mark.asyncio
    async def test_no_lookup_when_nothing_to_fetch(self, sui, make_event, drain):
        batch = [make_event("transferred", "0xb", 7), make_event("wrapped", "0xw", 3)]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        results = await drain(enricher.enrich_batch(batch))

        assert [item.object_id for _, item in results] == ["0xb", "0xw"]
        sui.try_multi_get_past_objects.assert_not_awaited()
        sui.try_get_past_object.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, details", [
        ("ObjectDeleted", {"objectId": "0xa", "version": "2", "digest": "d"}),
        ("ObjectNotExists", "0xa"),
        ("VersionNotFound", ["0xa", "2"]),
        ("VersionTooHigh", {"object_id": "0xa", "asked_version": "2", "latest_version": "1"}),
    ])
    async def test_absent_objects_are_dropped(self, sui, make_event, found, drain, status, details):
        batch = [make_event("created", "0xa", 2), make_event("mutated", "0xc", 4)]
        sui.try_multi_get_past_objects.return_value = [missing(status, details), found("0xc", 4)]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        results = await drain(enricher.enrich_batch(batch))

        assert [(status, item.object_id) for status, item in results] == [(StepStatus.OK, "0xc")]
        assert enricher.dropped == 1

    @pytest.mark.asyncio
    async def test_result_count_mismatch_is_fatal(self, sui, make_event, found, drain):
        batch = [make_event("created", "0xa", 2), make_event("mutated", "0xc", 4)]
        sui.try_multi_get_past_objects.return_value = [found("0xa", 2)]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        with pytest.raises(BulkResponseMismatchError) as exc_info:
            await drain(enricher.enrich_batch(batch))

        assert exc_info.value.context["requested"] == 2
        assert exc_info.value.context["received"] == 1

    @pytest.mark.asyncio
    async def test_request_limit_error_is_not_retried_individually(self, sui, make_event, drain):
        sui.try_multi_get_past_objects.side_effect = RequestLimitError("At most 50 objects per multi-get, got 51")
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        with pytest.raises(RequestLimitError):
            await drain(enricher.enrich_batch([make_event("created", "0xa", 2)]))

        sui.try_get_past_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bulk_failure_falls_back_to_individual_lookups(self, sui, make_event, found, drain):
        batch = [
            make_event("created", "0xa", 2),
            make_event("mutated", "0xb", 3),
            make_event("created", "0xc", 4),
        ]
        sui.try_multi_get_past_objects.side_effect = NetworkError("connection reset")
        sui.try_get_past_object.side_effect = [
            found("0xa", 2),
            missing("ObjectNotExists", "0xb"),
            found("0xc", 4),
        ]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        results = await drain(enricher.enrich_batch(batch))

        assert [(status, item.object_id) for status, item in results] == [
            (StepStatus.OK, "0xa"),
            (StepStatus.OK, "0xc"),
        ]
        assert [call.args for call in sui.try_get_past_object.await_args_list] == [
            ("0xa", 2, QUERY_OPTIONS),
            ("0xb", 3, QUERY_OPTIONS),
            ("0xc", 4, QUERY_OPTIONS),
        ]
        assert enricher.dropped == 1

    @pytest.mark.asyncio
    async def test_individual_failure_is_reported_and_lookup_continues(self, sui, make_event, found, drain):
        batch = [
            make_event("created", "0xa", 2),
            make_event("mutated", "0xb", 3),
            make_event("created", "0xc", 4),
        ]
        sui.try_multi_get_past_objects.side_effect = RPCError("too many objects")
        sui.try_get_past_object.side_effect = [found("0xa", 2), NetworkError("timeout"), found("0xc", 4)]
        enricher = ObjectEnricher(sui, batch_size=10, batch_timeout=1)

        results = await drain(enricher.enrich_batch(batch))

        assert [(status, item.object_id) for status, item in results] == [
            (StepStatus.OK, "0xa"),
            (StepStatus.ERR, "0xb"),
            (StepStatus.OK, "0xc"),
        ]
        assert results[1][1].object is None

    @pytest.mark.asyncio
    async def test_fallback_matches_individual_fetch(self, make_event, found, drain):
        """A failed bulk lookup yields the same as looking up each item alone"""
        responses = {"0xa": found("0xa", 2), "0xb": missing("VersionNotFound", ["0xb", "3"])}

        async def lookup(object_id, version, options):
            return responses[object_id]

        def make_sui():
            client = MagicMock()
            client.try_multi_get_past_objects = AsyncMock(side_effect=NetworkError("down"))
            client.try_get_past_object = AsyncMock(side_effect=lookup)
            return client

        def batch():
            return [make_event("created", "0xa", 2), make_event("mutated", "0xb", 3)]

        via_fallback = await drain(ObjectEnricher(make_sui(), batch_size=10, batch_timeout=1).enrich_batch(batch()))
        direct = await drain(ObjectEnricher(make_sui(), batch_size=10, batch_timeout=1).fetch_individually(batch()))

        assert via_fallback == direct


class TestTransform:
    """Test the streaming entry point"""

    @pytest.mark.asyncio
    async def test_transform_stream(self, sui, make_event, found, drain):
        events = [
            make_event("created", "0x1", 1, digest="tx1"),
            make_event("deleted", "0x2", 5, digest="tx1"),
            make_event("mutated", "0x3", 2, digest="tx2"),
        ]

        async def source():
            for event in events:
                yield event

        async def multi_get(requests, options):
            return [found(r.object_id, r.version) for r in requests]

        sui.try_multi_get_past_objects.side_effect = multi_get
        enricher = ObjectEnricher(sui, batch_size=2, batch_timeout=1)

        results = await drain(enricher.transform(source()))

        assert [(status, item.object_id) for status, item in results] == [
            (StepStatus.OK, "0x2"),
            (StepStatus.OK, "0x1"),
            (StepStatus.OK, "0x3"),
        ]
        assert sui.try_multi_get_past_objects.await_count == 2

    def test_batch_size_capped_at_rpc_limit(self, sui):
        assert ObjectEnricher(sui, batch_size=500, batch_timeout=1).batch_size == 50
