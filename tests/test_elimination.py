import pytest

from drawing.elimination import EliminationSequencer
from drawing.models import AnimationStage, EliminationDelta
from drawing.timings import AnimationTimings


def delta(*ids, index=0, value="3"):
    return EliminationDelta(eliminated_ids=tuple(ids), digit_index=index, digit_value=value)


@pytest.fixture
def sequencer(scheduler, store):
    return EliminationSequencer(scheduler, store, AnimationTimings())


def test_batch_waits_for_release_then_runs_stages(scheduler, store, sequencer):
    done = []
    sequencer.enqueue(1, delta(1, 2), known_ids=(1, 2, 3), on_done=lambda batch: done.append(batch.cycle_id))

    assert store.get_stage(1) is AnimationStage.PENDING
    scheduler.advance(10.0)
    assert store.get_stage(1) is AnimationStage.PENDING
    assert done == []

    sequencer.release(1)
    scheduler.advance(0.31)
    assert store.get_stage(1) is AnimationStage.SHAKE
    assert store.get_stage(2) is AnimationStage.SHAKE
    scheduler.advance(1.2)
    assert store.get_stage(1) is AnimationStage.SHRINK
    scheduler.advance(0.6)
    assert done == [1]
    assert store.get_stage(1) is AnimationStage.RECENTLY_ENTERED
    scheduler.advance(0.5)
    assert store.get_stage(1) is AnimationStage.NONE
    assert not sequencer.busy


def test_stage_timestamps(scheduler, store, sequencer):
    sequencer.enqueue(1, delta(5), known_ids=(5,), on_done=lambda batch: None)
    sequencer.release(1)
    scheduler.run_until_idle()

    at = {event.kind: event.at for event in store.get_timeline()}
    assert at["stage_shake"] == pytest.approx(0.3)
    assert at["stage_shrink"] == pytest.approx(1.5)
    assert at["stage_exit"] == pytest.approx(2.1)
    assert at["eliminated_removed"] == pytest.approx(2.1)


def test_batches_run_fifo_even_when_released_out_of_order(scheduler, store, sequencer):
    order = []
    sequencer.enqueue(1, delta(1), known_ids=(1, 2), on_done=lambda batch: order.append(batch.cycle_id))
    sequencer.enqueue(2, delta(2, index=1), known_ids=(1, 2), on_done=lambda batch: order.append(batch.cycle_id))

    sequencer.release(2)
    scheduler.advance(5.0)
    assert order == []
    assert store.get_stage(2) is AnimationStage.PENDING

    sequencer.release(1)
    scheduler.advance(2.2)
    assert order == [1]
    scheduler.advance(2.2)
    assert order == [1, 2]


def test_empty_batch_short_circuits(scheduler, store, sequencer):
    done = []
    sequencer.enqueue(1, None, known_ids=(), on_done=lambda batch: done.append(scheduler.now()))
    sequencer.release(1)
    assert done == [0.0]
    assert store.get_timeline(kind="elimination_skipped")


def test_unknown_ids_are_dropped(scheduler, store, sequencer):
    batch = sequencer.enqueue(1, delta(1, 42), known_ids=(1, 2), on_done=lambda b: None)
    assert batch.participant_ids == (1,)
    assert store.get_stage(42) is AnimationStage.NONE


def test_clear_stops_running_batch(scheduler, store, sequencer):
    done = []
    sequencer.enqueue(1, delta(1), known_ids=(1,), on_done=lambda batch: done.append(1))
    sequencer.release(1)
    scheduler.advance(0.5)
    sequencer.clear()
    scheduler.advance(5.0)
    assert done == []
    assert not sequencer.busy
