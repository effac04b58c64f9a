from reflex_data_table.debounce import Debouncer


def test_value_commits_after_quiet_period(clock):
    committed = []
    debouncer = Debouncer(committed.append, delay_ms=300, clock=clock)
    debouncer.push("a")
    clock.advance(299)
    assert not debouncer.poll()
    clock.advance(1)
    assert debouncer.poll()
    assert committed == ["a"]


def test_each_push_restarts_the_deadline(clock):
    committed = []
    debouncer = Debouncer(committed.append, delay_ms=300, clock=clock)
    debouncer.push("a")
    clock.advance(200)
    debouncer.push("ab")
    clock.advance(200)
    assert not debouncer.poll()
    clock.advance(100)
    debouncer.poll()
    assert committed == ["ab"]


def test_flush_and_cancel(clock):
    committed = []
    debouncer = Debouncer(committed.append, clock=clock)
    assert not debouncer.flush()
    debouncer.push("x")
    assert debouncer.pending_value == "x"
    debouncer.cancel()
    assert not debouncer.pending
    debouncer.push("y")
    assert debouncer.flush()
    assert committed == ["y"]


def test_immediate_mode_commits_on_push(clock):
    committed = []
    debouncer = Debouncer(committed.append, clock=clock, immediate=True)
    debouncer.push("now")
    assert committed == ["now"]
    assert not debouncer.pending
