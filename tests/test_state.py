"""Busy counter pairing across many concurrent captures and remuxes."""

import asyncio
import os
import random
from unittest.mock import AsyncMock, patch

import pytest

from streamcap.postprocess import PostProcessor
from streamcap.state import BusyCounter, RuntimeState
from streamcap.supervisor import ProcessSupervisor

from conftest import FakeProcess, FakeSite


class TestBusyCounter:
    def test_acquire_release(self):
        counter = BusyCounter('test')
        counter.acquire()
        counter.acquire()
        counter.release()
        assert counter.value == 1

    def test_release_below_zero_raises(self):
        counter = BusyCounter('test')
        with pytest.raises(RuntimeError):
            counter.release()
        assert counter.value == 0


def test_begin_exit_is_single_shot():
    state = RuntimeState()
    assert state.begin_exit() is True
    assert state.begin_exit() is False
    assert state.exiting


class TrackingCounter(BusyCounter):
    def __init__(self, name):
        super().__init__(name)
        self.acquired = 0
        self.released = 0
        self.lowest = 0

    def acquire(self):
        super().acquire()
        self.acquired += 1

    def release(self):
        super().release()
        self.released += 1
        self.lowest = min(self.lowest, self.value)


@pytest.mark.parametrize('seed', [1, 2, 3])
def test_counters_return_to_zero_for_any_exit_order(config, seed):
    rng = random.Random(seed)
    state = RuntimeState()
    state.post_processing = TrackingCounter('post-processing')
    site = FakeSite(config)
    post = PostProcessor(config, state)
    supervisor = ProcessSupervisor(config, state, post)

    names = [f"model{i}" for i in range(8)]
    sizes = {name: rng.choice([0, 0, 512, 4096]) for name in names}
    spawned = []

    def spawn(*args, **kwargs):
        if args[0] == 'ffmpeg':
            proc = FakeProcess()
            proc.finish()
            return proc
        name = args[1]

        def write_output():
            if sizes[name] is not None:
                with open(os.path.join(config.capture_dir, name + '.ts'), 'wb') as f:
                    f.write(b'\0' * sizes[name])

        proc = FakeProcess(on_exit=write_output)
        spawned.append(proc)
        return proc

    # one capture never writes a file at all
    sizes[names[0]] = None

    async def scenario():
        with patch('asyncio.create_subprocess_exec', new=AsyncMock(side_effect=spawn)):
            await asyncio.gather(*(
                supervisor.start_capture(site, ['recorder', name], name, name) for name in names
            ))
            assert site.get_num_caps_in_progress() == len(names)

            order = list(spawned)
            rng.shuffle(order)
            for proc in order:
                proc.finish()
                await asyncio.sleep(0)
            await supervisor.wait_idle()
            await post.wait_idle()

    asyncio.run(scenario())

    counter = state.post_processing
    expected_remuxes = sum(1 for size in sizes.values() if size)
    assert site.get_num_caps_in_progress() == 0
    assert counter.value == 0
    assert counter.lowest == 0
    assert counter.acquired == counter.released == expected_remuxes
