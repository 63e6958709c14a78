import argparse
import logging

import pygame

from chip8.cpu import CPU, STATE_PAUSED, TIMER_MODE_CYCLE, TIMER_MODE_REALTIME
from chip8.screen import Screen
from chip8.sound import Buzzer, pre_init_mixer
from chip8.worker import CPUWorker

logger = logging.getLogger(__name__)

# Frames per second of the window loop
FRAME_RATE = 60

# Sets which keys on the keyboard map to the Chip 8 keys
KEY_MAPPINGS = {
    pygame.K_1: 0x1,
    pygame.K_2: 0x2,
    pygame.K_3: 0x3,
    pygame.K_4: 0xC,
    pygame.K_q: 0x4,
    pygame.K_w: 0x5,
    pygame.K_e: 0x6,
    pygame.K_r: 0xD,
    pygame.K_a: 0x7,
    pygame.K_s: 0x8,
    pygame.K_d: 0x9,
    pygame.K_f: 0xE,
    pygame.K_z: 0xA,
    pygame.K_x: 0x0,
    pygame.K_c: 0xB,
    pygame.K_v: 0xF,
}

# Toggles between paused and running
PAUSE_KEY = pygame.K_p
QUIT_KEY = pygame.K_ESCAPE


def toggle_pause(project_cpu, project_screen):
    if project_cpu.cpu_state == STATE_PAUSED:
        project_cpu.cpu_resume()
        logger.info("Resumed")
    else:
        project_cpu.cpu_pause()
        logger.info("Paused")
    project_screen.set_paused(project_cpu.cpu_state == STATE_PAUSED)


def screen_cpu_connector(args):
    """
    Runs the main emulator loop with the specified arguments. The CPU runs
    on a worker thread; this loop handles window events, the keypad, frames
    and beeps.

    :param args: the parsed command-line arguments
    """
    project_cpu = CPU(
        strict=args.strict,
        legacy_shift_flags=not args.canonical_shift,
        timer_mode=TIMER_MODE_REALTIME if args.realtime_timers else TIMER_MODE_CYCLE)
    project_cpu.cpu_load_rom(args.rom)
    logger.info("Loaded %s", args.rom)

    if not args.mute:
        pre_init_mixer()
    pygame.init()
    project_screen = Screen(ratio=args.scale)
    project_screen.init_display()
    project_buzzer = Buzzer()
    if not args.mute:
        project_buzzer.init_mixer()

    project_worker = CPUWorker(project_cpu, op_delay=args.op_delay / 1000.0)
    project_worker.start()
    clock = pygame.time.Clock()
    running = True

    try:
        while running:
            # Check for events
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == QUIT_KEY:
                        running = False
                    elif event.key == PAUSE_KEY:
                        toggle_pause(project_cpu, project_screen)
                    elif event.key in KEY_MAPPINGS:
                        project_cpu.cpu_keypad.press(KEY_MAPPINGS[event.key])
                elif event.type == pygame.KEYUP and event.key in KEY_MAPPINGS:
                    project_cpu.cpu_keypad.release(KEY_MAPPINGS[event.key])

            frame = project_cpu.cpu_display.consume_frame()
            if frame is not None:
                project_screen.draw_frame(frame)
                project_screen.update_screen()

            if project_worker.pending_beeps():
                project_buzzer.beep()

            # Check to see if the CPU has halted
            if project_worker.worker_error is not None:
                running = False

            clock.tick(FRAME_RATE)
    finally:
        project_worker.stop()
        project_buzzer.close()
        project_screen.close()
        pygame.quit()

    if project_worker.worker_error is not None:
        raise project_worker.worker_error


def build_parser():
    parser = argparse.ArgumentParser(
        description="Starts a simple Chip 8 emulator")
    parser.add_argument(
        "rom", help="the ROM file to load on startup")
    parser.add_argument(
        "-s", help="the scale factor to apply to the display "
                   "(default is 10)", type=int, default=10, dest="scale")
    parser.add_argument(
        "-d", help="sets the CPU operation to take at least "
                   "the specified number of milliseconds to execute (default is 1)",
        type=int, default=1, dest="op_delay")
    parser.add_argument(
        "--strict", help="stop on unknown op-codes", action="store_true")
    parser.add_argument(
        "--canonical-shift", help="shift the outgoing bit into VF",
        action="store_true", dest="canonical_shift")
    parser.add_argument(
        "--realtime-timers", help="decrement the timers at 60 Hz instead of "
                                  "once per instruction",
        action="store_true", dest="realtime_timers")
    parser.add_argument(
        "--mute", help="disable the sound timer beep", action="store_true")
    parser.add_argument(
        "-v", "--verbose", help="log debugging output", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    screen_cpu_connector(args)


if __name__ == "__main__":
    main()
