import logging
import queue
import threading
import time

from chip8.cpu import TIMER_MODE_REALTIME
from chip8.exception import Chip8Exception

logger = logging.getLogger(__name__)

# How often the timers are decremented in realtime mode
TIMER_FREQUENCY = 60


class CPUWorker(object):
    """
    Drives a CPU from a background thread, so that the key settling delay
    and the instruction pacing never hold up the window event loop. The
    worker is the only caller of cpu_step. Beeps and fatal errors are handed
    back to the host thread through the worker.
    """
    def __init__(self, cpu, op_delay=0.001):
        """
        :param cpu: the CPU to run
        :param op_delay: seconds to wait between instructions
        """
        self.worker_cpu = cpu
        self.worker_op_delay = op_delay
        self.worker_beeps = queue.Queue()
        self.worker_error = None
        self.worker_last_tick = time.perf_counter()
        self._stop_event = threading.Event()
        self._thread = None

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self.worker_last_tick = time.perf_counter()
        self._thread = threading.Thread(target=self._run, name='chip8-cpu', daemon=True)
        self._thread.start()
        logger.debug("CPU worker started")

    def stop(self):
        self._stop_event.set()
        thread = self._thread
        if thread and thread.is_alive():
            thread.join(timeout=0.5)
        self._thread = None

    def is_alive(self):
        return self._thread is not None and self._thread.is_alive()

    def run_once(self):
        """
        Step the CPU once, and tick the timers if they are due in realtime
        mode. Beeps are queued for the host.
        """
        cycle = self.worker_cpu.cpu_step()
        if cycle.beep:
            self.worker_beeps.put(True)
        if self.worker_cpu.cpu_timer_mode == TIMER_MODE_REALTIME:
            self.tick_timers(time.perf_counter())
        return cycle

    def tick_timers(self, now):
        """
        Decrement the timers once for every 1/60th of a second elapsed since
        the last tick.

        :param now: the current time from time.perf_counter
        :return: the number of ticks applied
        """
        ticks = int((now - self.worker_last_tick) * TIMER_FREQUENCY)
        for _ in range(ticks):
            if self.worker_cpu.cpu_tick_timers():
                self.worker_beeps.put(True)
        self.worker_last_tick += ticks / float(TIMER_FREQUENCY)
        return ticks

    def pending_beeps(self):
        """
        Returns the number of beeps raised since the last call.
        """
        count = 0
        while True:
            try:
                self.worker_beeps.get_nowait()
            except queue.Empty:
                return count
            count += 1

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Chip8Exception as exc:
                logger.info("CPU worker exiting: %s", exc)
                self.worker_error = exc
                return
            except Exception as exc:
                logger.exception("CPU worker failed")
                self.worker_error = exc
                return
            if self.worker_op_delay:
                self._stop_event.wait(self.worker_op_delay)
