"""Tests for post-processing (remux / move) of finished captures."""

import asyncio
import os
from unittest.mock import AsyncMock, patch

import pytest

from streamcap.postprocess import PostProcessor, build_remux_command

from conftest import FakeProcess


class TestBuildRemuxCommand:
    def test_mp4_adds_audio_bitstream_filter(self):
        assert build_remux_command('ffmpeg', 'in.ts', 'out.mp4', 'mp4') == [
            'ffmpeg', '-hide_banner', '-v', 'fatal', '-i', 'in.ts',
            '-c', 'copy', '-bsf:a', 'aac_adtstoasc', '-copyts', 'out.mp4',
        ]

    def test_mkv_has_no_filter(self):
        assert build_remux_command('/opt/ffmpeg', 'in.ts', 'out.mkv', 'mkv') == [
            '/opt/ffmpeg', '-hide_banner', '-v', 'fatal', '-i', 'in.ts',
            '-c', 'copy', '-copyts', 'out.mkv',
        ]


@pytest.fixture
def raw_capture(config):
    path = os.path.join(config.capture_dir, 'alice.ts')
    with open(path, 'wb') as f:
        f.write(b'\x47' * 188)
    return path


def output_file(config, ext):
    return os.path.join(config.complete_dir, f'alice.{ext}')


def run_remux(processor, proc):
    """Start a remux of alice.ts with ``proc`` standing in for ffmpeg.

    Returns (spawn mock, counter value while ffmpeg runs).
    """
    async def scenario():
        spawn = AsyncMock(return_value=proc)
        with patch('asyncio.create_subprocess_exec', new=spawn):
            processor.post_process('alice')
            await asyncio.sleep(0)
            busy = processor.state.post_processing.value
            proc.finish()
            await processor.wait_idle()
        return spawn, busy

    return asyncio.run(scenario())


class TestPostProcessor:
    def test_non_remux_type_moves_file(self, config, state, raw_capture):
        config.set('Recording', 'auto_convert_type', 'ts')
        processor = PostProcessor(config, state)

        assert processor.post_process('alice') is None
        assert not os.path.exists(raw_capture)
        assert os.path.exists(output_file(config, 'ts'))
        assert state.post_processing.value == 0

    def test_move_failure_is_logged(self, config, state, caplog):
        config.set('Recording', 'auto_convert_type', 'ts')
        processor = PostProcessor(config, state)

        processor.post_process('alice')
        assert any('alice' in r.getMessage() for r in caplog.records)

    def test_remux_runs_ffmpeg_and_removes_raw(self, config, state, raw_capture):
        processor = PostProcessor(config, state)
        proc = FakeProcess(on_exit=lambda: open(output_file(config, 'mp4'), 'wb').close())

        spawn, busy = run_remux(processor, proc)
        args = spawn.call_args.args
        assert args[0] == 'ffmpeg'
        assert raw_capture in args
        assert args[-1] == output_file(config, 'mp4')
        assert busy == 1
        assert not os.path.exists(raw_capture)
        assert os.path.exists(output_file(config, 'mp4'))
        assert state.post_processing.value == 0

    def test_auto_delete_removes_output_too(self, config, state, raw_capture):
        config.set('Recording', 'auto_delete', 'true')
        config.set('Recording', 'auto_convert_type', 'mkv')
        processor = PostProcessor(config, state)
        proc = FakeProcess(on_exit=lambda: open(output_file(config, 'mkv'), 'wb').close())

        run_remux(processor, proc)
        assert not os.path.exists(raw_capture)
        assert not os.path.exists(output_file(config, 'mkv'))
        assert state.post_processing.value == 0

    def test_counter_released_after_cleanup(self, config, state, raw_capture):
        processor = PostProcessor(config, state)
        seen = []
        original_remove = processor._remove

        def remove(path):
            original_remove(path)
            seen.append(state.post_processing.value)

        processor._remove = remove
        run_remux(processor, FakeProcess())
        assert seen == [1]
        assert state.post_processing.value == 0

    def test_spawn_failure_releases_counter_and_keeps_raw(self, config, state, raw_capture):
        processor = PostProcessor(config, state)

        async def scenario():
            spawn = AsyncMock(side_effect=FileNotFoundError('ffmpeg'))
            with patch('asyncio.create_subprocess_exec', new=spawn):
                processor.post_process('alice')
                assert state.post_processing.value == 1
                await processor.wait_idle()

        asyncio.run(scenario())
        assert state.post_processing.value == 0
        assert os.path.exists(raw_capture)
