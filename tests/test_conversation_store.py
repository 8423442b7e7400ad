import asyncio
import json
from datetime import datetime

import pytest

from cloud_store import CloudStoreError
from config import Identity
from conversation_store import ConversationStore
from models import Turn, TurnRole
import constants as C
import storage


class FakeRemote:
    def __init__(self, items=None, load_error=None, save_error=None):
        self.items = items or []
        self.load_error = load_error
        self.save_error = save_error
        self.saved = []

    async def load(self, user_id):
        if self.load_error:
            raise self.load_error
        return self.items

    async def save(self, user_id, turns):
        if self.save_error:
            raise self.save_error
        self.saved.append((user_id, turns))


def test_load_seeds_welcome_greeting_when_empty():
    store = ConversationStore()
    store.load()

    assert len(store) == 1
    assert store.last().role == TurnRole.ASSISTANT
    assert store.last().content == C.WELCOME_GREETING


def test_append_keeps_order_without_dedup():
    store = ConversationStore()
    store.load()
    store.append(Turn.user("same"))
    store.append(Turn.user("same"))
    store.append(Turn.assistant("reply"))

    assert [t.content for t in store.turns][1:] == ["same", "same", "reply"]


@pytest.mark.parametrize("count", [0, 1, 5, 40])
def test_reset_leaves_single_greeting(count):
    store = ConversationStore()
    store.load()
    store.extend(Turn.user(f"msg {i}") for i in range(count))

    store.reset()

    assert len(store) == 1
    assert store.turns[0].content == C.RESET_GREETING


def test_mutations_are_persisted_locally():
    store = ConversationStore(theme=C.THEME_LIGHT)
    store.load()
    store.set_theme(C.THEME_LIGHT)
    store.append(Turn.user("draw a neon cat"))

    reloaded = ConversationStore()
    reloaded.load()

    assert reloaded.theme == C.THEME_LIGHT
    assert [t.content for t in reloaded.turns] == [t.content for t in store.turns]
    assert [t.id for t in reloaded.turns] == [t.id for t in store.turns]


def test_turns_property_is_a_copy():
    store = ConversationStore()
    store.load()
    store.turns.append(Turn.user("sneaky"))

    assert len(store) == 1


def test_save_twice_produces_identical_snapshot(config_dir):
    store = ConversationStore()
    store.load()
    store.append(Turn.user("hey"))
    path = config_dir / C.STATE_FILE

    store.save()
    first = path.read_bytes()
    store.save()
    second = path.read_bytes()

    assert first == second
    assert json.loads(first)["version"] == C.STATE_VERSION


def test_corrupt_snapshot_falls_back_to_greeting(config_dir):
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / C.STATE_FILE).write_text("{broken", encoding="utf-8")

    store = ConversationStore()
    store.load()

    assert store.theme == C.DEFAULT_THEME
    assert [t.content for t in store.turns] == [C.WELCOME_GREETING]


def test_unknown_roles_are_skipped_on_load(config_dir):
    config_dir.mkdir(parents=True, exist_ok=True)
    good = Turn.user("kept").to_dict()
    (config_dir / C.STATE_FILE).write_text(
        json.dumps({"theme": "neon", "turns": [good, {"role": "dj", "content": "x"}]}),
        encoding="utf-8",
    )

    theme, turns = storage.load_state()

    assert theme == C.DEFAULT_THEME
    assert [t.content for t in turns] == ["kept"]


def run_all(coros):
    async def _drain():
        for coro in coros:
            await coro

    asyncio.run(_drain())


def signed_in_store(remote, scheduled):
    store = ConversationStore(
        remote=remote,
        identity=Identity(user_id="u1"),
        schedule_remote=scheduled.append,
    )
    store.load()
    return store


def test_remote_save_is_scheduled_after_each_mutation():
    remote = FakeRemote()
    scheduled = []
    store = signed_in_store(remote, scheduled)
    store.apply_remote([])
    store.append(Turn.user("hey"))
    run_all([scheduled.pop(0)])
    store.reset()
    run_all([scheduled.pop(0)])

    assert [len(turns) for _, turns in remote.saved] == [2, 1]
    assert remote.saved[0][0] == "u1"
    assert remote.saved[0][1][1]["content"] == "hey"
    assert remote.saved[1][1][0]["content"] == C.RESET_GREETING


def test_remote_saves_held_until_remote_history_is_loaded():
    remote = FakeRemote()
    scheduled = []
    store = signed_in_store(remote, scheduled)

    store.append(Turn.user("early"))
    store.set_theme(C.THEME_LIGHT)
    assert scheduled == []

    store.apply_remote([])

    assert len(scheduled) == 1
    run_all(scheduled)
    assert [t["content"] for t in remote.saved[0][1]] == [C.WELCOME_GREETING, "early"]


def test_remote_history_replaces_held_local_changes():
    remote = FakeRemote()
    scheduled = []
    store = signed_in_store(remote, scheduled)
    store.append(Turn.user("early"))

    applied = store.apply_remote([Turn.user("from cloud").to_dict()])

    assert applied is True
    assert scheduled == []
    assert [t.content for t in store.turns] == ["from cloud"]


def test_only_newest_queued_snapshot_is_written():
    remote = FakeRemote()
    scheduled = []
    store = signed_in_store(remote, scheduled)
    store.apply_remote([])
    store.append(Turn.user("first"))
    store.append(Turn.user("second"))

    run_all(reversed(scheduled))

    assert len(remote.saved) == 1
    assert remote.saved[0][1][-1]["content"] == "second"


def test_remote_save_skipped_without_identity():
    scheduled = []
    store = ConversationStore(remote=FakeRemote(), schedule_remote=scheduled.append)
    store.load()
    store.apply_remote([])
    store.append(Turn.user("hey"))

    assert scheduled == []


def test_remote_save_failure_is_swallowed():
    remote = FakeRemote(save_error=CloudStoreError("offline"))
    scheduled = []
    store = signed_in_store(remote, scheduled)
    store.apply_remote([])
    store.append(Turn.user("hey"))

    run_all(scheduled)

    assert len(store) == 2
    assert remote.saved == []


def test_scheduler_failure_does_not_block_local_save():
    def _refuse(coro):
        raise RuntimeError("loop down")

    store = ConversationStore(
        remote=FakeRemote(),
        identity=Identity(user_id="u1"),
        schedule_remote=_refuse,
    )
    store.load()
    store.apply_remote([])
    store.append(Turn.user("hey"))

    _, turns = storage.load_state()
    assert [t.content for t in turns][-1] == "hey"


@pytest.mark.asyncio
async def test_web_client_history_is_adopted_not_overwritten():
    remote_items = [
        {"text": "Ayyyeeee what's good", "sender": "bot", "timestamp": 1700000000000},
        {"text": "draw a neon cat", "sender": "user", "timestamp": 1700000005000},
        {"text": "visual bomb", "sender": "bot", "image": "https://img/neon", "timestamp": 1700000009000},
    ]
    remote = FakeRemote(items=remote_items)
    scheduled = []
    store = signed_in_store(remote, scheduled)

    assert await store.load_remote() is True
    assert [t.role for t in store.turns] == [TurnRole.ASSISTANT, TurnRole.USER, TurnRole.ASSISTANT]
    assert [t.content for t in store.turns] == ["Ayyyeeee what's good", "draw a neon cat", "visual bomb"]
    assert store.turns[2].image_url == "https://img/neon"
    assert store.turns[1].timestamp == datetime.fromtimestamp(1700000005)

    store.set_theme(C.THEME_LIGHT)
    await scheduled[0]

    assert [t["content"] for t in remote.saved[0][1]] == [
        "Ayyyeeee what's good",
        "draw a neon cat",
        "visual bomb",
    ]


@pytest.mark.asyncio
async def test_remote_history_takes_precedence():
    remote_turns = [Turn.user("from cloud").to_dict(), Turn.assistant("cloud reply").to_dict()]
    store = ConversationStore(remote=FakeRemote(items=remote_turns), identity=Identity(user_id="u1"))
    store.load()

    applied = await store.load_remote()

    assert applied is True
    assert [t.content for t in store.turns] == ["from cloud", "cloud reply"]
    _, local = storage.load_state()
    assert [t.content for t in local] == ["from cloud", "cloud reply"]


@pytest.mark.asyncio
async def test_empty_or_failed_remote_keeps_local_history():
    store = ConversationStore(remote=FakeRemote(items=[]), identity=Identity(user_id="u1"))
    store.load()
    assert await store.load_remote() is False

    store.remote = FakeRemote(load_error=CloudStoreError("denied"))
    assert await store.load_remote() is False
    assert [t.content for t in store.turns] == [C.WELCOME_GREETING]
