"""Tests for signer-side field completion."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from signflow.service.field_service import InMemoryFieldService
from signflow.state.operations import FieldOperationQueue
from signflow.state.signing import SigningSession
from signflow.state.store import FieldStore

DOCUMENT_ID = "doc-1"


@pytest_asyncio.fixture
async def loaded_store(store: FieldStore, service: InMemoryFieldService, payload) -> FieldStore:
    service.seed(DOCUMENT_ID, payload(field_type="signature", signer="S1"))
    service.seed(DOCUMENT_ID, payload(field_type="date", signer="S1"))
    service.seed(DOCUMENT_ID, payload(field_type="text", signer="S2"))
    await store.load_page(1)
    return store


class TestSigningSession:
    @pytest.mark.asyncio
    async def test_lists_only_assigned_fields(self, loaded_store: FieldStore) -> None:
        signing = SigningSession(loaded_store, "S1")
        assert {field.field_type.value for field in signing.fields()} == {"signature", "date"}
        assert signing.progress() == (0, 2)
        assert not signing.is_finished()

    @pytest.mark.asyncio
    async def test_complete_persists_value(
        self, loaded_store: FieldStore, service: InMemoryFieldService
    ) -> None:
        signing = SigningSession(loaded_store, "S1")

        result = await signing.complete("db-2", "2024-05-01")

        assert result.ok
        assert result.field.value == "2024-05-01"
        assert result.field.is_complete
        assert service.calls["complete_field"] == 1
        remote = {field.server_id: field for field in await service.list_fields(DOCUMENT_ID)}
        assert remote[2].completed
        assert signing.progress() == (1, 2)

    @pytest.mark.asyncio
    async def test_all_fields_completed_finishes(self, loaded_store: FieldStore) -> None:
        signing = SigningSession(loaded_store, "S1")
        await signing.complete("db-1", "data:image/png;base64,AAAA")
        await signing.complete(2, "2024-05-01")

        assert signing.is_finished()
        assert signing.pending() == []

    @pytest.mark.asyncio
    async def test_other_signers_field_is_rejected(
        self, loaded_store: FieldStore, service: InMemoryFieldService
    ) -> None:
        result = await SigningSession(loaded_store, "S1").complete("db-3", "hello")

        assert not result.ok
        assert "another signer" in result.error.message
        assert loaded_store.get("db-3").value is None
        assert service.calls["complete_field"] == 0

    @pytest.mark.asyncio
    async def test_field_completes_only_once(
        self, loaded_store: FieldStore, service: InMemoryFieldService
    ) -> None:
        signing = SigningSession(loaded_store, "S1")
        await signing.complete("db-2", "2024-05-01")

        second = await signing.complete("db-2", "2025-01-01")

        assert not second.ok
        assert loaded_store.get("db-2").value == "2024-05-01"
        assert service.calls["complete_field"] == 1

    @pytest.mark.asyncio
    async def test_empty_value_and_unknown_field_are_rejected(self, loaded_store: FieldStore) -> None:
        signing = SigningSession(loaded_store, "S1")

        assert not (await signing.complete("db-1", "")).ok
        missing = await signing.complete("db-99", "x")
        assert not missing.ok
        assert missing.error.message == "field not found"

    @pytest.mark.asyncio
    async def test_signer_without_fields_is_finished(self, loaded_store: FieldStore) -> None:
        signing = SigningSession(loaded_store, "S9")
        assert signing.is_finished()
        assert signing.progress() == (0, 0)

    @pytest.mark.asyncio
    async def test_failed_completion_is_recorded(self, loaded_store: FieldStore, service: InMemoryFieldService) -> None:
        service.fail_on.add("complete_field")

        result = await SigningSession(loaded_store, "S1").complete("db-1", "Jane Signer")

        assert not result.ok
        assert loaded_store.get("db-1").sync_error == "complete_field failed"
        assert loaded_store.get("db-1").value == "Jane Signer"


class TestRejectionOutsideRunningLoop:
    """Completion is triggered from Qt slots, where no asyncio loop is running."""

    @pytest.fixture
    def loop(self):
        event_loop = asyncio.new_event_loop()
        yield event_loop
        event_loop.close()

    @pytest.fixture
    def bound_store(self, loop, service: InMemoryFieldService, payload) -> FieldStore:
        store = FieldStore(DOCUMENT_ID, service, queue=FieldOperationQueue(loop=loop))
        store.add_from_server(service.seed(DOCUMENT_ID, payload(field_type="text", signer="S1")))
        return store

    def test_other_signers_field_resolves_without_running_loop(
        self, bound_store: FieldStore, service: InMemoryFieldService
    ) -> None:
        future = SigningSession(bound_store, "S2").complete("db-1", "x")

        assert future.done()
        assert "another signer" in future.result().error.message
        assert service.calls["complete_field"] == 0

    def test_empty_and_unknown_resolve_without_running_loop(self, bound_store: FieldStore) -> None:
        signing = SigningSession(bound_store, "S1")

        assert not signing.complete("db-1", "").result().ok
        assert signing.complete("db-42", "x").result().error.message == "field not found"

    def test_accepted_completion_runs_on_bound_loop(
        self, loop, bound_store: FieldStore, service: InMemoryFieldService
    ) -> None:
        task = SigningSession(bound_store, "S1").complete("db-1", "Jane")

        result = loop.run_until_complete(task)

        assert result.ok
        assert service.calls["complete_field"] == 1
