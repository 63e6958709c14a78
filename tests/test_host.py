"""Tests for the keypad, the CPU worker and the host helpers."""

import time

import pygame
import pytest
from conftest import assemble

from chip8.cpu import CPU, STATE_STOPPED, TIMER_MODE_REALTIME
from chip8.exception import StackUnderflowException
from chip8.keypad import NUM_KEYS, Keypad
from chip8.main import KEY_MAPPINGS, build_parser
from chip8.screen import pixel_rectangles
from chip8.sound import (
    BEEP_DURATION,
    SAMPLE_RATE,
    SAMPLE_SIZE,
    Buzzer,
    interleave,
    pre_init_mixer,
    sine_wave,
)
from chip8.worker import CPUWorker


class TestKeypad:
    """Test the input latch."""

    def test_press_and_release(self):
        keypad = Keypad()
        keypad.press(0xC)
        assert keypad.is_pressed(0xC)
        keypad.release(0xC)
        assert not keypad.is_pressed(0xC)

    def test_snapshot_is_a_copy(self):
        keypad = Keypad()
        snapshot = keypad.snapshot()
        keypad.press(0x1)
        assert snapshot[0x1] is False
        assert keypad.snapshot()[0x1] is True

    def test_set_keys(self):
        keypad = Keypad()
        keypad.set_keys([1] + [0] * (NUM_KEYS - 1))
        assert keypad.snapshot() == (True,) + (False,) * (NUM_KEYS - 1)
        keypad.release_all()
        assert not any(keypad.snapshot())

    def test_invalid_key(self):
        with pytest.raises(ValueError):
            Keypad().press(0x10)

    def test_wrong_number_of_keys(self):
        with pytest.raises(ValueError):
            Keypad().set_keys([0] * 4)


class TestCPUWorker:
    """Test the background driver."""

    def test_run_once_queues_beeps(self):
        cpu = CPU(input_delay=0)
        cpu.cpu_load_program(assemble(0x6001, 0xF018, 0x1204))
        worker = CPUWorker(cpu, op_delay=0)
        for _ in range(4):
            worker.run_once()
        assert worker.pending_beeps() == 1
        assert worker.pending_beeps() == 0

    def test_realtime_ticks(self):
        """Half a second of realtime is 30 timer ticks."""
        cpu = CPU(input_delay=0, timer_mode=TIMER_MODE_REALTIME)
        cpu.cpu_timers['delay'] = 40
        worker = CPUWorker(cpu)
        worker.worker_last_tick = 10.0
        assert worker.tick_timers(10.5) == 30
        assert cpu.cpu_timers['delay'] == 10
        assert worker.tick_timers(10.51) == 0

    def test_thread_runs_and_stops(self):
        cpu = CPU(input_delay=0)
        cpu.cpu_load_program(assemble(0x7001, 0x1200))
        worker = CPUWorker(cpu, op_delay=0.001)
        worker.start()
        deadline = time.time() + 2
        while cpu.get_registers()['v'][0] == 0 and time.time() < deadline:
            time.sleep(0.01)
        worker.stop()
        assert not worker.is_alive()
        assert cpu.get_registers()['v'][0] > 0

    def test_thread_reports_errors(self):
        cpu = CPU(input_delay=0)
        cpu.cpu_load_program(assemble(0x00EE))
        worker = CPUWorker(cpu, op_delay=0)
        worker.start()
        deadline = time.time() + 2
        while worker.is_alive() and time.time() < deadline:
            time.sleep(0.01)
        assert isinstance(worker.worker_error, StackUnderflowException)
        assert cpu.cpu_state == STATE_STOPPED
        worker.stop()

    def test_thread_reports_unexpected_errors(self, monkeypatch):
        """Errors outside Chip8Exception still end the thread and are kept."""
        cpu = CPU(input_delay=0)
        failure = AssertionError("flag not written")

        def failing_step():
            raise failure

        monkeypatch.setattr(cpu, 'cpu_step', failing_step)
        worker = CPUWorker(cpu, op_delay=0)
        worker.start()
        deadline = time.time() + 2
        while worker.is_alive() and time.time() < deadline:
            time.sleep(0.01)
        assert not worker.is_alive()
        assert worker.worker_error is failure
        worker.stop()


class TestHostHelpers:
    """Test the pure parts of the pygame front end."""

    def test_pixel_rectangles(self):
        pixels = bytearray(64 * 32)
        pixels[0] = 1
        pixels[65] = 1
        assert pixel_rectangles(pixels, 10) == [(0, 0, 10, 10), (10, 10, 10, 10)]

    def test_sine_wave(self):
        samples = sine_wave(440.0, 0.5, 0.01, sample_rate=8000)
        assert len(samples) == 80
        assert samples[0] == 0
        assert max(samples) <= 0.5 * 32767

    def test_key_mappings_cover_keypad(self):
        assert sorted(KEY_MAPPINGS.values()) == list(range(NUM_KEYS))

    def test_parser_defaults(self):
        args = build_parser().parse_args(["pong.ch8"])
        assert args.rom == "pong.ch8"
        assert args.scale == 10
        assert args.op_delay == 1
        assert args.strict is False
        assert args.canonical_shift is False
        assert args.realtime_timers is False


@pytest.fixture
def headless_pygame(monkeypatch):
    """Start pygame with dummy audio and video drivers."""
    monkeypatch.setenv('SDL_AUDIODRIVER', 'dummy')
    monkeypatch.setenv('SDL_VIDEODRIVER', 'dummy')
    pygame.quit()
    yield pygame
    pygame.quit()


class TestBuzzer:
    """Test the beep against the mixer format."""

    def test_beep_length_after_startup(self, headless_pygame):
        """Started in the same order as main, the beep lasts BEEP_DURATION."""
        pre_init_mixer()
        headless_pygame.init()
        buzzer = Buzzer()
        buzzer.init_mixer()
        if buzzer.buzzer_sound is None:
            pytest.skip("no audio device")
        assert abs(buzzer.buzzer_sound.get_length() - BEEP_DURATION) < 0.005
        buzzer.close()

    def test_beep_length_on_stereo_mixer(self, headless_pygame):
        """A mixer already running in stereo gets one sample per channel."""
        try:
            headless_pygame.mixer.init(SAMPLE_RATE, SAMPLE_SIZE, 2, allowedchanges=0)
        except headless_pygame.error:
            pytest.skip("no audio device")
        buzzer = Buzzer()
        buzzer.init_mixer()
        assert headless_pygame.mixer.get_init()[2] == 2
        assert abs(buzzer.buzzer_sound.get_length() - BEEP_DURATION) < 0.005
        buzzer.close()

    def test_interleave(self):
        samples = sine_wave(440.0, 0.5, 0.001, sample_rate=8000)
        stereo = interleave(samples, 2)
        assert len(stereo) == 2 * len(samples)
        assert list(stereo[0::2]) == list(samples)
        assert list(stereo[1::2]) == list(samples)
        assert interleave(samples, 1) is samples
