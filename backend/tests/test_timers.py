from partyhub.game.timers import TimerService


def test_ticks_count_down_and_expire_once():
    timers = TimerService()
    ticks, expired = [], []
    timers.start("R1", 3, on_tick=lambda t: ticks.append(t.remaining), on_expire=expired.append)

    timers.advance("R1", 5)

    assert ticks == [2, 1, 0]
    assert len(expired) == 1
    assert timers.current("R1") is None


def test_starting_a_timer_cancels_the_previous_one():
    timers = TimerService()
    fired = []
    old = timers.start("R1", 2, on_expire=lambda t: fired.append("old"))
    new = timers.start("R1", 2, on_expire=lambda t: fired.append("new"))

    assert old.cancelled
    assert timers.current("R1") is new
    timers.advance("R1", 3)
    assert fired == ["new"]


def test_cancel_prevents_expiry():
    timers = TimerService()
    fired = []
    timers.start("R1", 1, on_expire=fired.append)
    timers.cancel("R1")
    timers.advance("R1", 2)
    assert fired == []


def test_rooms_are_independent():
    timers = TimerService()
    fired = []
    timers.start("R1", 1, on_expire=lambda t: fired.append("R1"))
    timers.start("R2", 1, on_expire=lambda t: fired.append("R2"))
    timers.advance("R2", 1)
    assert fired == ["R2"]
    assert timers.current("R1") is not None


def test_background_runner_uses_spawn_and_sleep():
    spawned, slept, fired = [], [], []
    timers = TimerService(spawn=lambda fn, token: spawned.append((fn, token)), sleep=slept.append)
    token = timers.start("R1", 2, on_expire=fired.append)

    fn, arg = spawned[0]
    assert arg is token
    fn(arg)

    assert slept == [1.0, 1.0]
    assert fired == [token]
    assert token.fired


def test_stale_runner_stops_after_restart():
    spawned, fired = [], []
    timers = TimerService(spawn=lambda fn, token: spawned.append((fn, token)), sleep=lambda s: None)
    timers.start("R1", 2, on_expire=lambda t: fired.append("old"))
    timers.start("R1", 2, on_expire=lambda t: fired.append("new"))

    for fn, token in spawned:
        fn(token)
    assert fired == ["new"]


def test_callback_errors_are_logged_not_raised(caplog):
    timers = TimerService()

    def boom(token):
        raise RuntimeError("tick failed")

    fired = []
    timers.start("R1", 2, on_tick=boom, on_expire=fired.append)
    timers.advance("R1", 2)

    assert len(fired) == 1
    assert "timer tick failed" in caplog.text
