import pytest

from drawing.models import WinnerStage
from drawing.timings import AnimationTimings
from drawing.winner import WinnerPresenter

from conftest import make_snapshot


@pytest.fixture
def presenter(scheduler, store):
    return WinnerPresenter(scheduler, store, AnimationTimings())


def completed():
    return make_snapshot("3412", status="Completed", winning_number=3412)


def test_stages_play_in_order(scheduler, store, presenter):
    snapshot = completed()
    store.set_snapshot(snapshot)
    assert presenter.observe(snapshot)
    assert presenter.stage is WinnerStage.DARK

    scheduler.advance(1.01)
    assert presenter.stage is WinnerStage.SPOTLIGHT
    scheduler.advance(1.5)
    assert presenter.stage is WinnerStage.CARD_REVEAL
    scheduler.advance(1.0)
    assert presenter.stage is WinnerStage.VISIBLE
    assert scheduler.pending_count == 0


def test_latch_survives_repeated_polls(scheduler, store, presenter):
    for _ in range(5):
        presenter.observe(completed())
        scheduler.advance(5.0)
    assert presenter.fire_count == 1


def test_latch_rearms_when_status_leaves_completed(scheduler, store, presenter):
    presenter.observe(completed())
    scheduler.advance(5.0)
    presenter.observe(make_snapshot("", status="Active"))
    assert not presenter.latched
    assert presenter.stage is WinnerStage.HIDDEN

    presenter.observe(completed())
    assert presenter.fire_count == 2


def test_no_winner_no_presentation(scheduler, store, presenter):
    snapshot = make_snapshot("9999", status="Completed", winning_number=9999)
    assert snapshot.winner is None
    assert not presenter.observe(snapshot)


def test_replay_bypasses_latch_and_dismiss_hides(scheduler, store, presenter):
    snapshot = completed()
    store.set_snapshot(snapshot)
    presenter.observe(snapshot)
    scheduler.advance(5.0)

    assert presenter.replay()
    assert presenter.fire_count == 2
    assert presenter.stage is WinnerStage.DARK

    presenter.dismiss()
    assert presenter.stage is WinnerStage.HIDDEN
    scheduler.advance(5.0)
    assert presenter.stage is WinnerStage.HIDDEN


def test_replay_without_winner_is_refused(store, presenter):
    assert not presenter.replay()
