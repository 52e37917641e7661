import threading

import pytest

from herd.game.errors import InvalidPayload, InvalidPhase, RoomNotFound
from herd.game.prompts import Lexicon
from herd.game.registry import ROOM_CODE_ALPHABET, RoomRegistry


def test_create_room_returns_fresh_codes():
    registry = RoomRegistry(code_length=5)
    codes = {registry.create_room() for _ in range(200)}
    assert len(codes) == 200
    assert len(registry) == 200
    for code in codes:
        assert len(code) == 5
        assert set(code) <= set(ROOM_CODE_ALPHABET)


def test_get_unknown_room_raises():
    registry = RoomRegistry()
    with pytest.raises(RoomNotFound):
        registry.get('NOPE1')
    with pytest.raises(RoomNotFound):
        registry.join('NOPE1', 'Alice')


def test_lookup_ignores_case_and_whitespace():
    registry = RoomRegistry()
    code = registry.create_room()
    assert registry.get(f' {code.lower()} ').code == code
    assert code.lower() in registry


def test_remove_discards_room_in_any_phase():
    registry = RoomRegistry()
    code = registry.create_room()
    pid = registry.join(code, 'Alice')
    registry.start_round(code, 'happy')
    registry.submit(code, pid, 'glad')

    assert registry.remove(code) is True
    assert registry.remove(code) is False
    with pytest.raises(RoomNotFound):
        registry.get(code)


def test_sweep_idle_removes_rooms_nobody_is_in(clock):
    registry = RoomRegistry(idle_grace_sec=30, clock=clock)
    empty = registry.create_room()
    busy = registry.create_room()
    pid = registry.join(busy, 'Alice')

    clock.advance(29_000)
    assert registry.sweep_idle() == []

    clock.advance(1_000)
    assert registry.sweep_idle() == [empty]
    assert busy in registry

    registry.set_connected(busy, pid, False)
    clock.advance(30_000)
    assert registry.sweep_idle() == [busy]
    assert len(registry) == 0


def test_rejoin_before_grace_keeps_room(clock):
    registry = RoomRegistry(idle_grace_sec=30, clock=clock)
    code = registry.create_room()
    pid = registry.join(code, 'Alice')
    registry.leave(code, pid)
    clock.advance(20_000)
    registry.join(code, 'Bob')
    clock.advance(20_000)
    assert registry.sweep_idle() == []


def test_prompts_come_from_lexicon_when_not_given():
    registry = RoomRegistry(lexicon=Lexicon(['only']))
    code = registry.create_room()
    registry.join(code, 'Alice')
    assert registry.start_round(code) == 'only'
    assert registry.get(code).prompt == 'only'

    registry.force_advance(code)
    registry.continue_or_finish(code, 'continue')
    assert registry.get(code).round == 2


def test_prompt_required_without_lexicon():
    registry = RoomRegistry()
    code = registry.create_room()
    registry.join(code, 'Alice')
    with pytest.raises(InvalidPayload):
        registry.start_round(code)
    assert registry.get(code).phase == 'lobby'


def test_registry_passes_settings_to_rooms():
    registry = RoomRegistry(min_players=3, max_rounds=2, name_policy='allow', stem=True)
    room = registry.get(registry.create_room())
    assert room.min_players == 3
    assert room.max_rounds == 2
    assert room.name_policy == 'allow'
    assert room.stem is True


def test_concurrent_submissions_reveal_exactly_once():
    registry = RoomRegistry()
    code = registry.create_room()
    players = [registry.join(code, f'P{i}') for i in range(40)]
    registry.start_round(code, 'happy')

    results = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(len(players))

    def play(pid):
        barrier.wait()
        result = registry.submit(code, pid, 'glad')
        with results_lock:
            results.append(result)

    threads = [threading.Thread(target=play, args=(pid,)) for pid in players]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    revealed = [r for r in results if r is not None]
    room = registry.get(code)
    assert len(results) == 40
    assert len(revealed) == 1
    assert room.phase == 'revealed'
    assert len(room.history) == 1
    assert all(p.score == 39 for p in room.players())


def test_force_advance_racing_last_submission_reveals_once():
    for _ in range(20):
        registry = RoomRegistry()
        code = registry.create_room()
        a = registry.join(code, 'A')
        b = registry.join(code, 'B')
        registry.start_round(code, 'happy')
        registry.submit(code, a, 'glad')

        outcomes = []
        t1 = threading.Thread(target=lambda: outcomes.append(registry.force_advance(code)))
        t2 = threading.Thread(target=lambda: outcomes.append(_submit_quietly(registry, code, b)))
        t1.start()
        t2.start()
        t1.join(timeout=5)
        t2.join(timeout=5)

        assert len(registry.get(code).history) == 1
        assert sum(1 for o in outcomes if o is not None) == 1


def _submit_quietly(registry, code, pid):
    # Loses the race when force_advance already revealed the round.
    try:
        return registry.submit(code, pid, 'glad')
    except InvalidPhase:
        return None


def test_busy_room_does_not_block_other_rooms():
    registry = RoomRegistry()
    slow = registry.create_room()
    fast = registry.create_room()
    registry.join(slow, 'A')

    done = threading.Event()

    def join_fast():
        registry.join(fast, 'B')
        done.set()

    # Hold the slow room's lock as if a long action were in flight there.
    with registry.get(slow)._lock:
        t = threading.Thread(target=join_fast)
        t.start()
        assert done.wait(timeout=5)
    t.join(timeout=5)
    assert len(registry.get(fast).players()) == 1


def test_sweep_drops_rooms_with_no_activity(clock):
    registry = RoomRegistry(idle_grace_sec=30, inactivity_sec=600, clock=clock)
    code = registry.create_room()
    registry.join(code, 'Alice')

    clock.advance(599_000)
    assert registry.sweep_idle() == []
    clock.advance(1_000)
    assert registry.sweep_idle() == [code]


def test_remove_if_idle_rechecks_under_room_lock(clock):
    registry = RoomRegistry(idle_grace_sec=30, clock=clock)
    code = registry.create_room()
    room = registry.get(code)
    clock.advance(30_000)

    # Someone joined after the room looked idle: it must survive.
    registry.join(code, 'Alice')
    assert registry.remove_if_idle(code) is False
    assert code in registry
    assert not room.closed


def test_join_into_swept_room_fails_instead_of_vanishing(clock):
    registry = RoomRegistry(idle_grace_sec=30, clock=clock)
    code = registry.create_room()
    room = registry.get(code)
    clock.advance(30_000)

    assert registry.remove_if_idle(code) is True
    # A caller still holding the Room object cannot add a player to it.
    with pytest.raises(RoomNotFound):
        room.join('Alice')


def test_remove_if_idle_races_with_joins(clock):
    registry = RoomRegistry(idle_grace_sec=30, clock=clock)
    code = registry.create_room()
    clock.advance(30_000)
    joined = []
    start = threading.Barrier(2)

    def join():
        start.wait()
        try:
            joined.append(registry.join(code, 'Alice'))
        except RoomNotFound:
            pass

    t = threading.Thread(target=join)
    t.start()
    start.wait()
    removed = registry.remove_if_idle(code)
    t.join()

    # Either the join won and the room lives, or the sweep won and nobody joined.
    assert removed != bool(joined)
    assert (code in registry) == bool(joined)


def test_connected_players_counts_across_rooms():
    registry = RoomRegistry()
    one, two = registry.create_room(), registry.create_room()
    a = registry.join(one, 'Alice')
    registry.join(one, 'Bob')
    registry.join(two, 'Cara')
    assert registry.connected_players() == 3
    registry.set_connected(one, a, False)
    assert registry.connected_players() == 2


def test_authenticate_by_key():
    registry = RoomRegistry()
    code = registry.create_room()
    pid = registry.join(code, 'Alice')
    assert registry.authenticate(code, registry.get(code).player_key(pid)) == pid
