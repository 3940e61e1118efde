import math
from types import SimpleNamespace

import numpy as np
import pytest

from impact2d.simulations import (
    AtEnd,
    EventScheduler,
    EventState,
    EveryStep,
    EveryTime,
    Once,
    RunClock,
    SchedulerError,
)


@pytest.fixture
def context():
    return SimpleNamespace(clock=RunClock())


def recorder(log, name):
    def callback(ctx):
        log.append((name, ctx.clock.i, ctx.clock.t))

    return callback


def advance_by(dt):
    def step(ctx, dt_max):
        ctx.clock.advance(min(dt, dt_max))

    return step


def test_due_events_fire_in_registration_order(context):
    log = []
    scheduler = EventScheduler()
    scheduler.register("init", Once(0.0), recorder(log, "init"))
    scheduler.register("log_status", EveryStep(1), recorder(log, "log_status"))
    scheduler.register("adapt", EveryStep(1), recorder(log, "adapt"))
    scheduler.register("movie", EveryTime(0.5, include_start=True), recorder(log, "movie"))
    scheduler.register("end", AtEnd(1.0), recorder(log, "end"))

    steps = scheduler.run(context, advance_by(0.5))

    assert steps == 2
    assert [entry[0] for entry in log] == [
        "init",
        "log_status",
        "adapt",
        "movie",
        "log_status",
        "adapt",
        "movie",
        "log_status",
        "adapt",
        "movie",
        "end",
    ]


def test_initial_evaluation_happens_before_first_step(context):
    log = []
    scheduler = EventScheduler()
    scheduler.register("init", Once(0.0), recorder(log, "init"))
    scheduler.register("end", AtEnd(0.1), recorder(log, "end"))

    scheduler.run(context, advance_by(0.1))

    assert log[0] == ("init", 0, 0.0)
    assert scheduler.events[0].fire_count == 1
    assert scheduler.events[0].state is EventState.RETIRED


def test_every_step_interval(context):
    log = []
    scheduler = EventScheduler()
    scheduler.register("even", EveryStep(2), recorder(log, "even"))
    scheduler.register("end", AtEnd(0.5), lambda ctx: None)

    scheduler.run(context, advance_by(0.1))

    assert [entry[1] for entry in log] == [0, 2, 4]
    assert scheduler.events[0].state is EventState.REARMED


@pytest.mark.parametrize("include_start, expected", [(False, 10), (True, 11)])
def test_every_time_count_is_independent_of_step_size(context, include_start, expected):
    rng = np.random.default_rng(1234)
    log = []
    scheduler = EventScheduler()
    scheduler.register(
        "movie", EveryTime(1e-3, include_start=include_start), recorder(log, "movie")
    )
    scheduler.register("end", AtEnd(1e-2), lambda ctx: None)

    def step(ctx, dt_max):
        ctx.clock.advance(min(rng.uniform(1e-4, 4e-4), dt_max))

    scheduler.run(context, step)

    assert len(log) == expected == math.floor(1e-2 / 1e-3) + int(include_start)
    times = [entry[2] for entry in log]
    assert times == sorted(times)


def test_every_time_fires_once_when_step_crosses_several_multiples(context):
    log = []
    scheduler = EventScheduler()
    scheduler.register("movie", EveryTime(1.0), recorder(log, "movie"))
    scheduler.register("end", AtEnd(10.0), lambda ctx: None)

    def step(ctx, dt_max):
        ctx.clock.advance(2.5)

    scheduler.run(context, step)

    assert [entry[2] for entry in log] == [2.5, 5.0, 7.5, 10.0]


def test_next_deadline_limits_step(context):
    scheduler = EventScheduler()
    scheduler.register("movie", EveryTime(0.3), lambda ctx: None)
    scheduler.register("end", AtEnd(1.0), lambda ctx: None)

    assert scheduler.next_deadline(0.0) == pytest.approx(0.3)
    assert scheduler.next_deadline(0.95) == pytest.approx(1.0)

    requested = []

    def step(ctx, dt_max):
        requested.append(dt_max)
        ctx.clock.advance(min(0.25, dt_max))

    scheduler.run(context, step)

    assert context.clock.t == pytest.approx(1.0)
    assert requested[:3] == pytest.approx([0.3, 0.05, 0.3])


def test_once_waits_for_its_time(context):
    log = []
    scheduler = EventScheduler()
    scheduler.register("later", Once(0.25), recorder(log, "later"))
    scheduler.register("end", AtEnd(1.0), lambda ctx: None)

    scheduler.run(context, advance_by(0.1))

    assert len(log) == 1
    assert log[0][2] == pytest.approx(0.25)


def test_end_stops_loop_at_end_time(context):
    scheduler = EventScheduler()
    scheduler.register("end", AtEnd(0.3), lambda ctx: None)

    steps = scheduler.run(context, advance_by(0.07))

    assert scheduler.finished
    assert steps == 5
    assert context.clock.i == 5
    assert context.clock.t == pytest.approx(0.3)


def test_max_iterations_guard(context):
    scheduler = EventScheduler(max_iterations=3)
    scheduler.register("end", AtEnd(1.0), lambda ctx: None)

    with pytest.raises(SchedulerError):
        scheduler.run(context, advance_by(0.1))
    assert context.clock.i == 3


def test_run_requires_end_event(context):
    scheduler = EventScheduler()
    scheduler.register("log", EveryStep(1), lambda ctx: None)
    with pytest.raises(SchedulerError):
        scheduler.run(context, advance_by(0.1))


def test_duplicate_names_are_rejected():
    scheduler = EventScheduler()
    scheduler.register("log", EveryStep(1), lambda ctx: None)
    with pytest.raises(ValueError):
        scheduler.register("log", EveryStep(2), lambda ctx: None)


@pytest.mark.parametrize("factory", [lambda: EveryStep(0), lambda: EveryTime(0.0)])
def test_invalid_intervals(factory):
    with pytest.raises(ValueError):
        factory()


def test_fire_counts(context):
    scheduler = EventScheduler()
    scheduler.register("log", EveryStep(1), lambda ctx: None)
    scheduler.register("end", AtEnd(0.4), lambda ctx: None)

    scheduler.run(context, advance_by(0.1))

    assert scheduler.fire_counts() == {"log": 5, "end": 1}
