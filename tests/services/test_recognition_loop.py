"""Tests for the periodic recognition loop."""
import asyncio

import numpy as np
import pytest

from facerecog.core.exceptions import CameraAccessError, ModelLoadError
from facerecog.services.recognition_loop import LoopState, RecognitionLoop
from facerecog.ui.overlay import OverlayRenderer

INTERVAL = 0.02


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
async def recognition_loop(model_service, camera, gallery):
    loop = RecognitionLoop(
        model_service,
        camera,
        gallery,
        renderer=OverlayRenderer(show_confidence=True),
        threshold=0.6,
        interval=INTERVAL,
        width=64,
        height=48,
    )
    yield loop
    loop.stop()


class TestLifecycle:
    """State transitions of the loop."""

    async def test_start_runs_and_emits_results(self, recognition_loop, camera):
        results = []
        recognition_loop.add_listener(results.append)

        await recognition_loop.start()

        assert recognition_loop.state is LoopState.RUNNING
        assert len(camera.streams) == 1
        await wait_for(lambda: len(results) >= 2)
        assert [r.cycle for r in results[:2]] == [1, 2]

    async def test_start_twice_is_a_no_op(self, recognition_loop, camera, model_service):
        await recognition_loop.start()
        await recognition_loop.start()
        assert len(camera.streams) == 1
        assert model_service.load_calls == 1

    async def test_stop_releases_camera_and_silences_output(self, recognition_loop, camera, model_service):
        results = []
        recognition_loop.add_listener(results.append)
        await recognition_loop.start()
        await wait_for(lambda: len(results) >= 2)

        recognition_loop.stop()
        emitted = len(results)
        calls = model_service.detect_calls

        assert recognition_loop.state is LoopState.STOPPED
        assert camera.streams[0].released
        await asyncio.sleep(INTERVAL * 3)
        assert len(results) == emitted
        assert model_service.detect_calls == calls

    async def test_camera_failure_enters_error_state(self, model_service, gallery, fake_camera_class):
        camera = fake_camera_class(fail=True)
        loop = RecognitionLoop(model_service, camera, gallery, interval=INTERVAL)

        with pytest.raises(CameraAccessError):
            await loop.start()

        assert loop.state is LoopState.ERROR
        assert isinstance(loop.error, CameraAccessError)
        await asyncio.sleep(INTERVAL * 2)
        assert model_service.detect_calls == 0

        # Explicit retry once the camera is available
        camera.fail = False
        await loop.start()
        assert loop.state is LoopState.RUNNING
        assert loop.error is None
        loop.stop()

    async def test_model_failure_enters_error_state(self, fake_model_class, camera, gallery, model_load_error):
        loop = RecognitionLoop(fake_model_class(load_error=model_load_error), camera, gallery, interval=INTERVAL)

        with pytest.raises(ModelLoadError):
            await loop.start()

        assert loop.state is LoopState.ERROR
        assert camera.streams == []

    async def test_stop_while_starting_releases_acquired_camera(self, model_service, gallery, fake_camera_class):
        camera = fake_camera_class()
        original_acquire = camera.acquire

        async def slow_acquire(width, height):
            await asyncio.sleep(0.05)
            return await original_acquire(width, height)

        camera.acquire = slow_acquire
        loop = RecognitionLoop(model_service, camera, gallery, interval=INTERVAL)

        starting = asyncio.create_task(loop.start())
        await wait_for(lambda: loop.state is LoopState.STARTING)
        loop.stop()
        await starting

        assert loop.state is LoopState.STOPPED
        assert camera.streams[0].released
        await asyncio.sleep(INTERVAL * 2)
        assert model_service.detect_calls == 0

    async def test_async_context_manager(self, recognition_loop, camera):
        async with recognition_loop as running:
            assert running.state is LoopState.RUNNING
        assert recognition_loop.state is LoopState.STOPPED
        assert camera.streams[0].released


class TestCycles:
    """Per-cycle recognition behaviour."""

    async def test_results_follow_detection_order(
        self, recognition_loop, model_service, gallery, identity_factory, detection_factory, unit_vector
    ):
        alice = identity_factory("Alice", unit_vector(1, 0, 0, 0))
        await gallery.add(alice)
        model_service.detections = [
            detection_factory(unit_vector(0, 0, 1, 0), x=5),
            detection_factory(alice.embedding.copy(), x=30),
        ]
        results = []
        recognition_loop.add_listener(results.append)

        await recognition_loop.start()
        await wait_for(lambda: results)

        unknown, known = results[0].faces
        assert unknown.label == "Unknown"
        assert unknown.result.confidence is None
        assert unknown.result.distance == pytest.approx(np.sqrt(2), rel=1e-5)
        assert known.result.identity.id == alice.id
        assert known.result.confidence == pytest.approx(100.0)
        assert [m.result.identity.name for m in results[0].matches] == ["Alice"]

    async def test_registration_visible_to_next_cycle(
        self, recognition_loop, model_service, gallery, identity_factory, detection_factory, unit_vector
    ):
        embedding = unit_vector(0, 1, 0, 0)
        model_service.detections = [detection_factory(embedding)]
        results = []
        recognition_loop.add_listener(results.append)
        await recognition_loop.start()
        await wait_for(lambda: results)
        assert not results[-1].matches

        await gallery.add(identity_factory("Bob", embedding.copy()))
        seen = len(results)
        await wait_for(lambda: len(results) > seen + 1)

        assert results[-1].matches[0].result.identity.name == "Bob"

    async def test_failed_cycle_is_skipped_and_loop_keeps_running(self, recognition_loop, camera):
        results = []
        recognition_loop.add_listener(results.append)
        await recognition_loop.start()
        stream = camera.streams[0]

        stream.fail_reads = True
        await wait_for(lambda: recognition_loop.failed_cycles >= 2)
        emitted = len(results)
        await asyncio.sleep(INTERVAL * 2)
        assert recognition_loop.state is LoopState.RUNNING
        assert len(results) == emitted

        stream.fail_reads = False
        await wait_for(lambda: len(results) > emitted)

    async def test_failing_listener_does_not_stop_loop(self, recognition_loop):
        def broken(result):
            raise RuntimeError("listener bug")

        results = []
        recognition_loop.add_listener(broken)
        recognition_loop.add_listener(results.append)
        await recognition_loop.start()

        await wait_for(lambda: len(results) >= 2)
        assert recognition_loop.state is LoopState.RUNNING

    async def test_listener_stopping_the_loop_silences_later_listeners(self, recognition_loop):
        stopped = []
        delivered_after_stop = []
        frames_after_stop = []

        def stop_on_first(result):
            if not stopped:
                recognition_loop.stop()
                stopped.append(result.cycle)

        recognition_loop.add_listener(stop_on_first)
        recognition_loop.add_listener(lambda result: stopped and delivered_after_stop.append(result.cycle))
        recognition_loop.add_frame_listener(lambda frame, result: stopped and frames_after_stop.append(result.cycle))
        await recognition_loop.start()

        await wait_for(lambda: stopped)
        await asyncio.sleep(INTERVAL * 3)

        assert recognition_loop.state is LoopState.STOPPED
        assert delivered_after_stop == []
        assert frames_after_stop == []

    async def test_frame_listener_receives_annotated_copy(
        self, recognition_loop, camera, model_service, detection_factory, unit_vector
    ):
        model_service.detections = [detection_factory(unit_vector(1, 0), x=5, y=30)]
        frames = []
        recognition_loop.add_frame_listener(lambda frame, result: frames.append((frame, result)))

        await recognition_loop.start()
        await wait_for(lambda: frames)

        frame, result = frames[0]
        assert frame.shape == (48, 64, 3)
        assert frame.any()
        assert not camera.streams[0].frame.any()
        assert len(result.faces) == 1

    async def test_async_listener_is_awaited(self, recognition_loop):
        seen = []

        async def listener(result):
            await asyncio.sleep(0)
            seen.append(result.cycle)

        recognition_loop.add_listener(listener)
        await recognition_loop.start()
        await wait_for(lambda: len(seen) >= 2)
        assert seen[:2] == [1, 2]


async def test_slow_cycles_skip_ticks_without_overlap(fake_model_class, camera, gallery, detection_factory, unit_vector):
    interval = 0.1
    model = fake_model_class(detections=[detection_factory(unit_vector(1, 0))], delay=0.15)
    loop = RecognitionLoop(model, camera, gallery, interval=interval)

    await loop.start()
    await wait_for(lambda: loop.cycles >= 4, timeout=5.0)
    loop.stop()

    assert model.max_in_flight == 1
    # Each cycle spans between one and two intervals, so it swallows exactly one tick
    assert loop.skipped_ticks >= 3
    assert abs(loop.skipped_ticks - model.detect_calls) <= 1
