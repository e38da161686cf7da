from robowatch.core import InboundFrame
from robowatch.presenter import StatusPresenter

from conftest import FakeScheduler


def _presenter(scheduler: FakeScheduler) -> StatusPresenter:
    return StatusPresenter(scheduler=scheduler, idle_timeout=3.0, flash_seconds=0.6)


def test_flags_decay_after_idle_window():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"break_status": True, "emergency_status": False, "Arm_moving": True})
    status = presenter.status
    assert status.braking is True
    assert status.emergency is False
    assert status.arm_moving is True
    assert presenter.fresh is True

    scheduler.advance(2.9)
    assert presenter.status.braking is True

    scheduler.advance(0.2)
    status = presenter.status
    assert (status.braking, status.emergency, status.arm_moving) == (False, False, False)
    assert presenter.fresh is False


def test_new_update_restarts_idle_window():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"break_status": True})
    scheduler.advance(2.0)
    presenter.apply({"emergency_status": True})

    scheduler.advance(2.5)
    status = presenter.status
    assert status.braking is True
    assert status.emergency is True

    scheduler.advance(0.5)
    status = presenter.status
    assert status.braking is False
    assert status.emergency is False


def test_partial_update_keeps_other_fields():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"break_status": True, "Arm_moving": True})
    presenter.apply({"Arm_moving": False})

    status = presenter.status
    assert status.braking is True
    assert status.arm_moving is False


def test_null_field_is_ignored():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"emergency_status": True})
    presenter.apply({"emergency_status": None, "break_status": False})

    assert presenter.status.emergency is True
    assert presenter.status.braking is False


def test_true_value_flashes_briefly():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"break_status": True, "emergency_status": False})
    assert presenter.status.is_flashing("braking")
    assert not presenter.status.is_flashing("emergency")

    scheduler.advance(0.6)
    status = presenter.status
    assert status.flashing == frozenset()
    assert status.braking is True


def test_repeated_true_restarts_flash():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"Arm_moving": True})
    scheduler.advance(0.4)
    presenter.apply({"Arm_moving": True})
    scheduler.advance(0.4)

    assert presenter.status.is_flashing("arm_moving")

    scheduler.advance(0.3)
    assert not presenter.status.is_flashing("arm_moving")


def test_listeners_receive_every_change():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)
    seen = []
    unsubscribe = presenter.subscribe(seen.append)

    presenter.handle_frame(
        InboundFrame(
            discriminator="robot_status",
            data={"break_status": True},
            payload={"type": "robot_status", "data": {"break_status": True}},
        )
    )
    scheduler.advance(3.0)

    assert seen[0].braking is True
    assert seen[-1].braking is False

    unsubscribe()
    presenter.apply({"break_status": True})
    assert seen[-1].braking is False


def test_failing_listener_is_isolated():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)
    seen = []

    def _boom(status):
        raise RuntimeError("render failed")

    presenter.subscribe(_boom)
    presenter.subscribe(seen.append)

    presenter.apply({"emergency_status": True})

    assert seen and seen[-1].emergency is True


def test_teardown_cancels_timers_and_ignores_updates():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply({"break_status": True, "emergency_status": True})
    assert scheduler.pending

    presenter.teardown()

    assert scheduler.pending == []
    presenter.apply({"Arm_moving": True})
    assert presenter.status.arm_moving is False
    assert scheduler.pending == []


def test_non_mapping_payload_is_ignored():
    scheduler = FakeScheduler()
    presenter = _presenter(scheduler)

    presenter.apply(["not", "a", "mapping"])

    assert presenter.status.braking is False
    assert scheduler.pending == []


def test_decay_ends_pending_flash():
    scheduler = FakeScheduler()
    presenter = StatusPresenter(scheduler=scheduler, idle_timeout=1.0, flash_seconds=5.0)

    presenter.apply({"emergency_status": True})
    scheduler.advance(1.0)

    status = presenter.status
    assert status.emergency is False
    assert status.flashing == frozenset()
    assert scheduler.pending == []
