from uuid import uuid4

import pytest

from synctodo.errors import GatewayError, NotAuthenticated, TaskNotFoundError, ValidationError
from synctodo.schemas import DragEnded, OrderUpdate
from synctodo.store import StoreRegistry, TaskStore

from fakes import RecordingGateway


async def seed(store, *titles, completed=()):
    """Create tasks and pin their orders to the given sequence."""
    tasks = [await store.create({"title": t}) for t in titles]
    await store.bulk_set_order([(t.id, i) for i, t in enumerate(tasks)])
    for t in tasks:
        if t.title in completed:
            await store.set_completed(t.id, True)
    return {t.title: t.id for t in tasks}


class TestReadsAndVersions:
    @pytest.mark.asyncio
    async def test_create_is_visible_to_next_read(self, store):
        assert await store.read() == ()
        task = await store.create({"title": "  Buy milk  ", "tags": ["shopping", " "]})
        assert task.title == "Buy milk"
        assert task.tags == ["shopping"]
        assert task.owner_id == "alice"
        assert [t.id for t in await store.read()] == [task.id]

    @pytest.mark.asyncio
    async def test_version_bumps_on_each_write(self, store):
        v0 = store.version()
        task = await store.create({"title": "a"})
        await store.update(task.id, {"title": "b"})
        await store.delete(task.id)
        assert store.version() == v0 + 3
        assert (await store.snapshot()).version == store.version()

    @pytest.mark.asyncio
    async def test_read_sorted_by_order(self, store):
        ids = await seed(store, "one", "two", "three")
        await store.bulk_set_order([(ids["three"], 0), (ids["one"], 1), (ids["two"], 2)])
        assert [t.title for t in await store.read()] == ["three", "one", "two"]

    @pytest.mark.asyncio
    async def test_reads_served_from_snapshot(self, store, gateway):
        await store.create({"title": "a"})
        lists = gateway.calls["list"]
        await store.read()
        await store.read()
        assert gateway.calls["list"] == lists

    @pytest.mark.asyncio
    async def test_fetch_overtaken_by_write_is_discarded(self):
        class RacingGateway(RecordingGateway):
            raced = False

            async def list(self, owner_id):
                rows = await super().list(owner_id)
                if not self.raced:
                    self.raced = True
                    await racing_store.create({"title": "landed mid-fetch"})
                return rows

        racing_gateway = RacingGateway()
        racing_store = TaskStore(racing_gateway, lambda: "alice")
        tasks = await racing_store.read()
        assert [t.title for t in tasks] == ["landed mid-fetch"]


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   ", "x" * 201])
    async def test_bad_titles_never_reach_gateway(self, store, gateway, title):
        with pytest.raises(ValidationError) as ei:
            await store.create({"title": title})
        assert ei.value.field == "title"
        assert gateway.writes() == 0

    @pytest.mark.asyncio
    async def test_title_limit_is_inclusive(self, store):
        task = await store.create({"title": "x" * 200})
        assert len(task.title) == 200

    @pytest.mark.asyncio
    async def test_malformed_id(self, store, gateway):
        with pytest.raises(ValidationError) as ei:
            await store.update("not-a-uuid", {"title": "x"})
        assert ei.value.field == "id"
        assert gateway.writes() == 0

    @pytest.mark.asyncio
    async def test_completed_must_be_bool(self, store):
        task = await store.create({"title": "a"})
        with pytest.raises(ValidationError):
            await store.set_completed(task.id, "yes")

    @pytest.mark.asyncio
    async def test_unauthenticated_store_refuses_everything(self, gateway):
        anon = TaskStore(gateway, lambda: None)
        with pytest.raises(NotAuthenticated):
            await anon.read()
        with pytest.raises(NotAuthenticated):
            await anon.create({"title": "a"})
        with pytest.raises(NotAuthenticated):
            await anon.bulk_set_order([])
        assert sum(gateway.calls.values()) == 0


class TestWrites:
    @pytest.mark.asyncio
    async def test_update_partial_and_clear_due(self, store):
        task = await store.create({"title": "a", "due_at": "2024-06-03", "remind": True})
        updated = await store.update(task.id, {"due_at": None})
        assert updated.due_at is None
        assert updated.remind is True
        assert updated.title == "a"

    @pytest.mark.asyncio
    async def test_null_tags_empties_list(self, store):
        task = await store.create({"title": "a", "tags": ["x"]})
        updated = await store.update(task.id, {"tags": None})
        assert updated.tags == []
        assert (await store.get(task.id)).tags == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["title", "completed", "remind", "reminded", "order"])
    async def test_null_on_required_field_rejected(self, store, gateway, name):
        task = await store.create({"title": "a"})
        writes = gateway.writes()
        with pytest.raises(ValidationError) as ei:
            await store.update(task.id, {name: None})
        assert ei.value.field == name
        assert gateway.writes() == writes
        assert (await store.get(task.id)).title == "a"

    @pytest.mark.asyncio
    async def test_refresh_refetches(self, store, gateway):
        task = await store.create({"title": "a"})
        await gateway.update("alice", task.id, {"title": "changed elsewhere"})
        assert (await store.get(task.id)).title == "a"
        lists = gateway.calls["list"]
        snap = await store.refresh()
        assert gateway.calls["list"] == lists + 1
        assert [t.title for t in snap.tasks] == ["changed elsewhere"]
        assert (await store.get(task.id)).title == "changed elsewhere"

    @pytest.mark.asyncio
    async def test_empty_update_does_not_write(self, store, gateway):
        task = await store.create({"title": "a"})
        writes = gateway.writes()
        assert (await store.update(task.id, {})).id == task.id
        assert gateway.writes() == writes

    @pytest.mark.asyncio
    async def test_set_completed_and_delete(self, store):
        task = await store.create({"title": "a"})
        assert (await store.set_completed(task.id, True)).completed is True
        await store.delete(task.id)
        assert await store.read() == ()
        with pytest.raises(TaskNotFoundError):
            await store.get(task.id)

    @pytest.mark.asyncio
    async def test_bulk_set_order_single_call(self, store, gateway):
        ids = await seed(store, "a", "b", "c")
        before = gateway.calls["bulk_update_order"]
        written = await store.bulk_set_order(
            [OrderUpdate(id=ids["c"], order=0), {"id": str(ids["a"]), "order": 1}, (ids["b"], 2)]
        )
        assert gateway.calls["bulk_update_order"] == before + 1
        assert [u.order for u in written] == [0, 1, 2]
        assert [t.title for t in await store.read()] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_bulk_set_order_rejects_bad_input(self, store, gateway):
        ids = await seed(store, "a")
        writes = gateway.writes()
        with pytest.raises(ValidationError):
            await store.bulk_set_order([(ids["a"], 0), (ids["a"], 1)])
        with pytest.raises(ValidationError):
            await store.bulk_set_order([(ids["a"], -1)])
        with pytest.raises(ValidationError):
            await store.bulk_set_order([(ids["a"], "1")])
        assert gateway.writes() == writes
        assert await store.bulk_set_order([]) == []

    @pytest.mark.asyncio
    async def test_failed_write_forces_refetch(self, store, gateway):
        await seed(store, "a")
        with pytest.raises(TaskNotFoundError):
            await store.update(uuid4(), {"title": "x"})
        lists = gateway.calls["list"]
        await store.read()
        assert gateway.calls["list"] == lists + 1

    @pytest.mark.asyncio
    async def test_failed_refetch_after_write_is_not_raised(self, store, gateway):
        gateway.fail_list = True
        task = await store.create({"title": "a"})
        assert task.title == "a"
        with pytest.raises(GatewayError):
            await store.read()
        gateway.fail_list = False
        assert [t.id for t in await store.read()] == [task.id]


class TestReorderEntryPoints:
    @pytest.mark.asyncio
    async def test_move_issues_one_bulk_write(self, store, gateway):
        ids = await seed(store, "a", "b", "c")
        before = gateway.calls["bulk_update_order"]
        view = await store.read()
        written = await store.move(view, ids["a"], 2)
        assert gateway.calls["bulk_update_order"] == before + 1
        assert len(written) == 3
        assert [t.title for t in await store.read()] == ["b", "c", "a"]

    @pytest.mark.asyncio
    async def test_noop_move_writes_nothing(self, store, gateway):
        ids = await seed(store, "a", "b")
        writes = gateway.writes()
        assert await store.move(await store.read(), ids["b"], 1) == []
        assert gateway.writes() == writes

    @pytest.mark.asyncio
    async def test_move_in_filtered_view(self, store):
        ids = await seed(store, "a", "b", "c", "d", completed=("b",))
        view = [t for t in await store.read() if not t.completed]
        await store.move(view, ids["d"], 0)
        tasks = await store.read()
        assert [t.title for t in tasks] == ["d", "b", "a", "c"]
        assert [t.order for t in tasks] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_drag_end_over_other(self, store):
        ids = await seed(store, "a", "b", "c")
        view = await store.read()
        await store.apply_drag(view, DragEnded(id=ids["c"], over_id=ids["a"]))
        assert [t.title for t in await store.read()] == ["c", "a", "b"]


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_listener_receives_changes_until_unsubscribed(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        task = await store.create({"title": "a"})
        unsubscribe()
        await store.delete(task.id)
        assert len(seen) == 1
        assert seen[0].kind == "create"
        assert seen[0].task_ids == (task.id,)
        assert seen[0].owner_id == "alice"

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_writes(self, store):
        def boom(change):
            raise RuntimeError("listener bug")

        seen = []
        store.subscribe(boom)
        store.subscribe(seen.append)
        await store.create({"title": "a"})
        assert len(seen) == 1


class TestRegistry:
    @pytest.mark.asyncio
    async def test_owners_are_isolated(self):
        registry = StoreRegistry(RecordingGateway())
        alice = registry.for_owner("alice")
        bob = registry.for_owner("bob")
        assert registry.for_owner("alice") is alice

        task = await alice.create({"title": "private"})
        assert await bob.read() == ()
        with pytest.raises(TaskNotFoundError):
            await bob.update(task.id, {"title": "mine now"})
        with pytest.raises(TaskNotFoundError):
            await bob.delete(task.id)
        assert (await alice.get(task.id)).title == "private"

    @pytest.mark.asyncio
    async def test_missing_owner_is_unauthenticated(self):
        registry = StoreRegistry(RecordingGateway())
        with pytest.raises(NotAuthenticated):
            await registry.for_owner(None).read()
