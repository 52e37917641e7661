from herd.game.registry import RoomRegistry
from herd.realtime.timers import RoomTimers


def _game(clock, **kwargs):
    registry = RoomRegistry(idle_grace_sec=30, clock=clock, **kwargs)
    timers = RoomTimers(registry, collect_sec=60, clock=clock)
    code = registry.create_room()
    a = registry.join(code, 'Alice')
    b = registry.join(code, 'Bob')
    return registry, timers, code, a, b


def test_tick_before_deadline_does_nothing(clock):
    registry, timers, code, a, b = _game(clock)
    registry.start_round(code, 'happy')
    deadline = timers.arm(code)
    assert deadline == clock.now + 60_000
    assert timers.deadline(code, 1) == deadline

    assert timers.tick(clock.now + 59_999) == ([], [])
    assert registry.get(code).phase == 'collecting'


def test_tick_closes_overdue_round_once(clock):
    registry, timers, code, a, b = _game(clock)
    registry.start_round(code, 'happy')
    timers.arm(code)
    registry.submit(code, a, 'glad')

    clock.advance(60_000)
    reveals, removed = timers.tick()
    assert removed == []
    assert [c for c, _ in reveals] == [code]
    assert reveals[0][1].answers == {a: 'glad', b: ''}
    assert registry.get(code).phase == 'revealed'

    assert timers.tick() == ([], [])
    assert timers.deadline(code, 1) is None


def test_deadline_from_earlier_round_is_ignored(clock):
    registry, timers, code, a, b = _game(clock)
    registry.start_round(code, 'happy')
    timers.arm(code)
    registry.force_advance(code)
    registry.continue_or_finish(code, 'continue', 'sad')

    # Round 2 was never armed; round 1's deadline must not close it.
    clock.advance(60_000)
    assert timers.tick() == ([], [])
    assert registry.get(code).phase == 'collecting'
    assert timers.deadline(code, 2) is None


def test_tick_sweeps_idle_rooms_without_any_socket(clock):
    registry, timers, code, a, b = _game(clock, inactivity_sec=600)
    clock.advance(600_000)
    reveals, removed = timers.tick()
    assert reveals == []
    assert removed == [code]
    assert code not in registry
