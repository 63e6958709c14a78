import logging
import threading
import time
from collections import namedtuple
from random import Random

from chip8.display import DisplayBuffer
from chip8.exception import (
    Chip8Exception,
    MemoryAccessException,
    StackOverflowException,
    StackUnderflowException,
    UnknownOpCodeException,
)
from chip8.keypad import Keypad

logger = logging.getLogger(__name__)

# The total amount of memory to allocate for the emulator
MAX_MEMORY = 4096

# Where the program counter should originally point, and where programs
# are loaded
PROGRAM_COUNTER_START = 0x200

# The largest program that fits between the program start and the end of
# memory
MAX_PROGRAM_SIZE = MAX_MEMORY - PROGRAM_COUNTER_START

# The total number of registers in the Chip 8 CPU
NUM_REGISTERS = 0x10

# VF doubles as the carry / borrow / collision flag
FLAG_REGISTER = 0xF

# The maximum number of nested subroutine calls
STACK_DEPTH = 16

# Seconds to wait before reading the keypad in the key skip instructions
INPUT_DELAY = 0.005

# Each built-in font glyph is 5 bytes long
FONT_SPRITE_SIZE = 5

# The built-in font for hex digits 0 - F, loaded at address 0. Only the high
# nibble of every row is significant.
FONT_SET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])

# Operand fields
OPERATION_MASK = 0xF000
X_MASK = 0x0F00
Y_MASK = 0x00F0
N_MASK = 0x000F
NN_MASK = 0x00FF
NNN_MASK = 0x0FFF

# The execution states of the CPU
STATE_RUNNING = 'running'
STATE_PAUSED = 'paused'
STATE_AWAITING_INPUT = 'awaiting_input'
STATE_STOPPED = 'stopped'

# Timer policies. In cycle mode, the timers are decremented once per call to
# cpu_step. In realtime mode, the host calls cpu_tick_timers at 60 Hz.
TIMER_MODE_CYCLE = 'cycle'
TIMER_MODE_REALTIME = 'realtime'

# The outcome of one call to cpu_step. The operand is None when no
# instruction was executed.
Cycle = namedtuple('Cycle', ['operand', 'state', 'beep'])

# C L A S S E S ###############################################################


class CPU(object):
    """
    A class to emulate a Chip 8 CPU. There are several good resources out on
    the web that describe the internals of the Chip 8 CPU. For example:

        http://devernay.free.fr/hacks/chip8/C8TECH10.HTM
        http://michael.toren.net/mirrors/chip8/chip8def.htm

    To summarize these sources, the Chip 8 has:

        * 16 x 8-bit general purpose registers (V0 - VF**)
        * 1 x 16-bit index register (I)
        * 1 x 16-bit program counter (PC)
        * a call stack of return addresses (16 deep)
        * 1 x 8-bit delay timer (DT)
        * 1 x 8-bit sound timer (ST)

    ** VF is a special register - it is used to store the overflow bit

    The CPU is advanced one instruction at a time by cpu_step. Every
    instruction moves the program counter itself: by 2 for a normal
    instruction, by 4 for a taken skip, or to a new address for jumps, calls
    and returns.
    """
    def __init__(self, keypad=None, display=None, strict=False,
                 legacy_shift_flags=True, timer_mode=TIMER_MODE_CYCLE,
                 input_delay=INPUT_DELAY, random_source=None):
        """
        Initialize the Chip8 CPU. The keypad and display are created if they
        are not passed in.

        :param keypad: the Keypad the host writes key states into
        :param display: the DisplayBuffer sprites are drawn on
        :param strict: raise UnknownOpCodeException on unknown operands
            instead of logging them
        :param legacy_shift_flags: store VX & 0x0F (shift right) and 0 (shift
            left) in VF, instead of the bit shifted out
        :param timer_mode: TIMER_MODE_CYCLE or TIMER_MODE_REALTIME
        :param input_delay: seconds to wait before reading the keypad
        :param random_source: a random.Random used by RAND
        """
        if timer_mode not in (TIMER_MODE_CYCLE, TIMER_MODE_REALTIME):
            raise ValueError("Unknown timer mode: {}".format(timer_mode))

        # There are two timer registers, one for sound and one that is general
        # purpose known as the delay timer.
        self.cpu_timers = {
            'delay': 0,
            'sound': 0,
        }

        # Defines the general purpose, index and program counter registers,
        # along with the call stack.
        self.cpu_registers = {
            'v': [],
            'index': 0,
            'pc': 0,
            'stack': [],
        }

        # The operation_lookup table is executed according to the most
        # significant nibble of the operand (e.g. operand 1nnn would call
        # self.cpu_jump_to_address). Groups 0, 8, E and F are further decoded
        # through cpu_group_lookup below.
        self.cpu_operation_lookup = {
            0x1: self.cpu_jump_to_address,               # 1nnn - JUMP nnn
            0x2: self.cpu_jump_to_subroutine,            # 2nnn - CALL nnn
            0x3: self.cpu_skip_if_reg_equal_val,         # 3snn - SKE  Vs, nn
            0x4: self.cpu_skip_if_reg_not_equal_val,     # 4snn - SKNE Vs, nn
            0x5: self.cpu_skip_if_reg_equal_reg,         # 5st0 - SKE  Vs, Vt
            0x6: self.cpu_move_value_to_reg,             # 6snn - LOAD Vs, nn
            0x7: self.cpu_add_value_to_reg,              # 7snn - ADD  Vs, nn
            0x9: self.cpu_skip_if_reg_not_equal_reg,     # 9st0 - SKNE Vs, Vt
            0xA: self.cpu_load_index_reg_with_value,     # Annn - LOAD I, nnn
            0xB: self.cpu_jump_to_v0_plus_value,         # Bnnn - JUMP V0 + nnn
            0xC: self.cpu_generate_random_number,        # Ctnn - RAND Vt, nn
            0xD: self.cpu_draw_sprite,                   # Dstn - DRAW Vs, Vy, n
        }

        # Operands starting with 0, keyed by the low 12 bits
        self.cpu_system_operation_lookup = {
            0x0E0: self.cpu_clear_screen,                # 00E0 - CLS
            0x0EE: self.cpu_return_from_subroutine,      # 00EE - RTS
        }

        # This set of operations is invoked when the operand loaded into the
        # CPU starts with 8 (e.g. operand 8st0 would call
        # self.cpu_move_reg_into_reg)
        self.cpu_logical_operation_lookup = {
            0x0: self.cpu_move_reg_into_reg,             # 8st0 - LOAD Vs, Vt
            0x1: self.cpu_logical_or,                    # 8st1 - OR   Vs, Vt
            0x2: self.cpu_logical_and,                   # 8st2 - AND  Vs, Vt
            0x3: self.cpu_exclusive_or,                  # 8st3 - XOR  Vs, Vt
            0x4: self.cpu_add_reg_to_reg,                # 8st4 - ADD  Vs, Vt
            0x5: self.cpu_subtract_reg_from_reg,         # 8st5 - SUB  Vs, Vt
            0x6: self.cpu_right_shift_reg,               # 8st6 - SHR  Vs
            0x7: self.cpu_subtract_reg_from_reg1,        # 8st7 - SUBN Vs, Vt
            0xE: self.cpu_left_shift_reg,                # 8stE - SHL  Vs
        }

        # Invoked when the operand starts with E, keyed by the low byte
        self.cpu_keyboard_routine_lookup = {
            0x9E: self.cpu_skip_if_key_pressed,          # Es9E - SKPR Vs
            0xA1: self.cpu_skip_if_key_not_pressed,      # EsA1 - SKUP Vs
        }

        # This set of operations is invoked when the operand loaded into the
        # CPU starts with F (e.g. operand Ft07 would call
        # self.cpu_move_delay_timer_into_reg)
        self.cpu_misc_routine_lookup = {
            0x07: self.cpu_move_delay_timer_into_reg,    # Ft07 - LOAD Vt, DELAY
            0x0A: self.cpu_wait_for_keypress,            # Ft0A - KEYD Vt
            0x15: self.cpu_move_reg_into_delay_timer,    # Fs15 - LOAD DELAY, Vs
            0x18: self.cpu_move_reg_into_sound_timer,    # Fs18 - LOAD SOUND, Vs
            0x1E: self.cpu_add_reg_into_index,           # Fs1E - ADD  I, Vs
            0x29: self.cpu_load_index_with_reg_sprite,   # Fs29 - LOAD I, Vs
            0x33: self.cpu_store_bcd_in_memory,          # Fs33 - BCD
            0x55: self.cpu_store_regs_in_memory,         # Fs55 - STOR [I], Vs
            0x65: self.cpu_read_regs_from_memory,        # Fs65 - LOAD Vs, [I]
        }

        # The groups that need a second lookup, with the operand bits that
        # select the routine
        self.cpu_group_lookup = {
            0x0: (NNN_MASK, self.cpu_system_operation_lookup),
            0x8: (N_MASK, self.cpu_logical_operation_lookup),
            0xE: (NN_MASK, self.cpu_keyboard_routine_lookup),
            0xF: (NN_MASK, self.cpu_misc_routine_lookup),
        }

        # Every operation in here must write VF each time it executes
        self.cpu_flag_operations = frozenset([
            self.cpu_add_reg_to_reg,
            self.cpu_subtract_reg_from_reg,
            self.cpu_right_shift_reg,
            self.cpu_subtract_reg_from_reg1,
            self.cpu_left_shift_reg,
            self.cpu_draw_sprite,
        ])

        self.cpu_keypad = keypad if keypad is not None else Keypad()
        self.cpu_display = display if display is not None else DisplayBuffer()
        self.cpu_strict = strict
        self.cpu_legacy_shift_flags = legacy_shift_flags
        self.cpu_timer_mode = timer_mode
        self.cpu_input_delay = input_delay
        self.cpu_random = random_source if random_source is not None else Random()
        self.cpu_lock = threading.RLock()
        self.cpu_operand = 0
        self.cpu_flag_written = False
        self.cpu_memory = bytearray(MAX_MEMORY)
        self.cpu_state = STATE_RUNNING
        self.cpu_resume_state = STATE_RUNNING
        self.cpu_last_unknown = None
        self.cpu_initialize()

    def __str__(self):
        val = 'PC: {:4X}  OP: {:4X}\n'.format(
            self.cpu_registers['pc'], self.cpu_operand)
        for index in range(NUM_REGISTERS):
            val += 'V{:X}: {:2X}\n'.format(index, self.cpu_registers['v'][index])
        val += 'I: {:4X}\n'.format(self.cpu_registers['index'])
        val += 'SP: {}\n'.format(len(self.cpu_registers['stack']))
        val += 'STATE: {}\n'.format(self.cpu_state)
        return val

    # L I F E C Y C L E #######################################################

    def cpu_initialize(self):
        """
        Reset the CPU by blanking out memory and all registers, reloading the
        font, clearing the stack, timers and display, and resetting the
        program counter to its starting value.
        """
        with self.cpu_lock:
            self.cpu_memory = bytearray(MAX_MEMORY)
            self.cpu_memory[0:len(FONT_SET)] = FONT_SET
            self.cpu_registers['v'] = [0] * NUM_REGISTERS
            self.cpu_registers['pc'] = PROGRAM_COUNTER_START
            self.cpu_registers['index'] = 0
            self.cpu_registers['stack'] = []
            self.cpu_timers['delay'] = 0
            self.cpu_timers['sound'] = 0
            self.cpu_display.clear_screen()
            self.cpu_operand = 0
            self.cpu_last_unknown = None
            self.cpu_state = STATE_RUNNING
            self.cpu_resume_state = STATE_RUNNING

    def cpu_load_program(self, program):
        """
        Copy the program into memory starting at the program start address.
        Whatever was there before is overwritten.

        :param program: the bytes of the program
        """
        program = bytes(program)
        if len(program) > MAX_PROGRAM_SIZE:
            raise MemoryAccessException(PROGRAM_COUNTER_START, len(program))
        with self.cpu_lock:
            end = PROGRAM_COUNTER_START + len(program)
            self.cpu_memory[PROGRAM_COUNTER_START:end] = program
        logger.debug("Loaded %d byte program", len(program))

    def cpu_load_rom(self, filename):
        """
        Load the ROM indicated by the filename into memory.

        :param filename: the name of the file to load
        """
        with open(filename, 'rb') as rom_file:
            cpu_romdata = rom_file.read()
        self.cpu_load_program(cpu_romdata)

    def cpu_pause(self):
        """
        Suspend the CPU. Pausing a paused or stopped CPU does nothing.
        """
        with self.cpu_lock:
            if self.cpu_state in (STATE_RUNNING, STATE_AWAITING_INPUT):
                self.cpu_resume_state = self.cpu_state
                self.cpu_state = STATE_PAUSED
                logger.debug("Paused at PC %04X", self.cpu_registers['pc'])

    def cpu_resume(self):
        """
        Continue in the state the CPU was in when it was paused.
        """
        with self.cpu_lock:
            if self.cpu_state == STATE_PAUSED:
                self.cpu_state = self.cpu_resume_state
                logger.debug("Resumed at PC %04X", self.cpu_registers['pc'])

    # E X E C U T I O N #######################################################

    def cpu_step(self):
        """
        Run one cycle. When running, this fetches and executes one
        instruction and then updates the timers. When awaiting a key press,
        the keypad is checked and the pending KEYD instruction is completed
        if any key is down. When paused or stopped, nothing happens.

        A Chip8Exception raised by an instruction stops the CPU and is passed
        on to the caller. The failing instruction has not changed any state.

        The settling delay before a key skip runs without holding cpu_lock, so
        the host can pause or read registers in the meantime.

        :return: a Cycle tuple
        """
        if self.cpu_input_delay > 0 and self.cpu_key_skip_pending():
            time.sleep(self.cpu_input_delay)

        with self.cpu_lock:
            if self.cpu_state in (STATE_PAUSED, STATE_STOPPED):
                return Cycle(None, self.cpu_state, False)

            try:
                if self.cpu_state == STATE_AWAITING_INPUT:
                    if not self.cpu_resolve_keypress():
                        return Cycle(None, self.cpu_state, False)
                    operand = self.cpu_operand
                else:
                    operand = self.cpu_execute_instruction()
            except Chip8Exception:
                self.cpu_state = STATE_STOPPED
                logger.error("CPU stopped\n%s", self)
                raise

            beep = False
            if self.cpu_timer_mode == TIMER_MODE_CYCLE:
                beep = self.cpu_tick_timers()
            return Cycle(operand, self.cpu_state, beep)

    def cpu_key_skip_pending(self):
        """
        Returns True if the CPU is running and the instruction at the program
        counter is Ex9E or ExA1.
        """
        with self.cpu_lock:
            cpu_pc = self.cpu_registers['pc']
            if self.cpu_state != STATE_RUNNING or cpu_pc + 1 >= MAX_MEMORY:
                return False
            cpu_operand = (self.cpu_memory[cpu_pc] << 8) | self.cpu_memory[cpu_pc + 1]
        return (cpu_operand & 0xF0FF) in (0xE09E, 0xE0A1)

    def cpu_fetch(self):
        """
        Read the big-endian instruction word at the program counter.
        """
        cpu_pc = self.cpu_registers['pc']
        self.cpu_check_address(cpu_pc, 2)
        return (self.cpu_memory[cpu_pc] << 8) | self.cpu_memory[cpu_pc + 1]

    def cpu_execute_instruction(self, cpu_operator_param=None):
        """
        Execute the next instruction pointed to by the program counter.
        For testing purposes, pass the operand directly to the function, in
        which case it is executed as though it were stored at the program
        counter. Timers are not updated.

        :param cpu_operator_param: the operand to execute
        :return: returns the operand executed
        """
        if cpu_operator_param is None:
            self.cpu_operand = self.cpu_fetch()
        else:
            self.cpu_operand = cpu_operator_param
        logger.debug('PC: %04X  OP: %04X', self.cpu_registers['pc'], self.cpu_operand)

        cpu_operation = self.cpu_decode(self.cpu_operand)
        self.cpu_flag_written = False
        cpu_operation()
        assert cpu_operation not in self.cpu_flag_operations or self.cpu_flag_written, \
            "{:04X} did not write VF".format(self.cpu_operand)
        return self.cpu_operand

    def cpu_decode(self, operand):
        """
        Find the routine for the operand. Operands that match no instruction
        map to cpu_unknown_operation.

        :param operand: the 16-bit instruction word
        :return: a bound method taking no arguments
        """
        cpu_group = (operand & OPERATION_MASK) >> 12
        if cpu_group in self.cpu_group_lookup:
            cpu_mask, cpu_lookup = self.cpu_group_lookup[cpu_group]
            return cpu_lookup.get(operand & cpu_mask, self.cpu_unknown_operation)
        return self.cpu_operation_lookup[cpu_group]

    def cpu_unknown_operation(self):
        """
        Handle an operand that is not a Chip 8 instruction. In strict mode
        this is fatal. Otherwise it is logged and the program counter stays
        where it is.
        """
        if self.cpu_strict:
            raise UnknownOpCodeException(self.cpu_operand)
        cpu_location = (self.cpu_registers['pc'], self.cpu_operand)
        if cpu_location != self.cpu_last_unknown:
            logger.warning("Unknown op-code %04X at %04X",
                           self.cpu_operand, self.cpu_registers['pc'])
            self.cpu_last_unknown = cpu_location

    def cpu_tick_timers(self):
        """
        Decrement both the sound and delay timer. Nothing happens while the
        CPU is paused or stopped.

        :return: True if the sound timer just ran out, meaning a beep
        """
        with self.cpu_lock:
            if self.cpu_state in (STATE_PAUSED, STATE_STOPPED):
                return False

            if self.cpu_timers['delay'] > 0:
                self.cpu_timers['delay'] -= 1

            cpu_beep = False
            if self.cpu_timers['sound'] > 0:
                cpu_beep = self.cpu_timers['sound'] == 1
                self.cpu_timers['sound'] -= 1
            return cpu_beep

    def cpu_resolve_keypress(self):
        """
        Complete a pending Ft0A if a key is down. The lowest numbered key
        that is down is stored in Vt and the program counter moves past the
        instruction.

        :return: True if the wait is over
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        for cpu_keyval, cpu_pressed in enumerate(self.cpu_keypad.snapshot()):
            if cpu_pressed:
                self.cpu_registers['v'][cpu_target] = cpu_keyval
                self.cpu_advance()
                self.cpu_state = STATE_RUNNING
                logger.debug("Key %X pressed, resuming", cpu_keyval)
                return True
        return False

    # H E L P E R S ###########################################################

    def cpu_advance(self, cpu_count=1):
        self.cpu_registers['pc'] += 2 * cpu_count

    def cpu_skip_if(self, cpu_condition):
        """
        Skip the next instruction if the condition holds.
        """
        self.cpu_advance(2 if cpu_condition else 1)

    def cpu_set_flag(self, cpu_value):
        self.cpu_registers['v'][FLAG_REGISTER] = cpu_value
        self.cpu_flag_written = True

    @staticmethod
    def cpu_check_address(cpu_address, cpu_length=1):
        """
        Make sure that cpu_length bytes starting at cpu_address are all
        inside memory.
        """
        if cpu_address < 0 or cpu_address + cpu_length > MAX_MEMORY:
            raise MemoryAccessException(cpu_address, cpu_length)

    def get_registers(self):
        """
        Returns a copy of the registers, safe to hand to the host.
        """
        with self.cpu_lock:
            return {
                'v': list(self.cpu_registers['v']),
                'index': self.cpu_registers['index'],
                'pc': self.cpu_registers['pc'],
                'stack': list(self.cpu_registers['stack']),
                'delay': self.cpu_timers['delay'],
                'sound': self.cpu_timers['sound'],
            }

    def get_stack(self):
        with self.cpu_lock:
            return list(self.cpu_registers['stack'])

    def read_memory(self, cpu_address, cpu_length=1):
        """
        Returns a copy of cpu_length bytes of memory from cpu_address.
        """
        self.cpu_check_address(cpu_address, cpu_length)
        with self.cpu_lock:
            return bytes(self.cpu_memory[cpu_address:cpu_address + cpu_length])

    # I N S T R U C T I O N S #################################################

    def cpu_clear_screen(self):
        """
        00E0 - CLS

        Turn off every pixel of the display.
        """
        self.cpu_display.clear_screen()
        self.cpu_advance()

    def cpu_return_from_subroutine(self):
        """
        00EE - RTS

        Pop the address of the call instruction off the stack and continue
        with the instruction following it.
        """
        if not self.cpu_registers['stack']:
            raise StackUnderflowException(self.cpu_registers['pc'])
        self.cpu_registers['pc'] = self.cpu_registers['stack'].pop()
        self.cpu_advance()

    def cpu_jump_to_address(self):
        """
        1nnn - JUMP nnn

        Jump to address. The address to jump to is calculated using the bits
        taken from the operand as follows:

           Bits:  15-12    11-8      7-4      3-0
                  unused  address  address  address
        """
        self.cpu_registers['pc'] = self.cpu_operand & NNN_MASK

    def cpu_jump_to_subroutine(self):
        """
        2nnn - CALL nnn

        Jump to subroutine. Save the current program counter on the stack. The
        subroutine to jump to is taken from the operand as follows:

           Bits:  15-12    11-8      7-4      3-0
                  unused  address  address  address
        """
        cpu_stack = self.cpu_registers['stack']
        if len(cpu_stack) >= STACK_DEPTH:
            raise StackOverflowException(self.cpu_registers['pc'], len(cpu_stack))
        cpu_stack.append(self.cpu_registers['pc'])
        self.cpu_registers['pc'] = self.cpu_operand & NNN_MASK

    def cpu_skip_if_reg_equal_val(self):
        """
        3snn - SKE Vs, nn

        Skip if register contents equal to constant value. The calculation for
        the register and constant is performed on the operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   source  constant  constant
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_skip_if(self.cpu_registers['v'][cpu_source] == (self.cpu_operand & NN_MASK))

    def cpu_skip_if_reg_not_equal_val(self):
        """
        4snn - SKNE Vs, nn

        Skip if register contents not equal to constant value.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_skip_if(self.cpu_registers['v'][cpu_source] != (self.cpu_operand & NN_MASK))

    def cpu_skip_if_reg_equal_reg(self):
        """
        5st0 - SKE Vs, Vt

        Skip if source register is equal to target register. The calculation
        for the registers to use is performed on the operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   source    target      0
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_target = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_skip_if(self.cpu_registers['v'][cpu_source] == self.cpu_registers['v'][cpu_target])

    def cpu_move_value_to_reg(self):
        """
        6snn - LOAD Vs, nn

        Move the constant value into the specified register.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['v'][cpu_target] = self.cpu_operand & NN_MASK
        self.cpu_advance()

    def cpu_add_value_to_reg(self):
        """
        7snn - ADD Vs, nn

        Add the constant value to the specified register, wrapping around at
        256. VF is not touched.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        temp = self.cpu_registers['v'][cpu_target] + (self.cpu_operand & NN_MASK)
        self.cpu_registers['v'][cpu_target] = temp & 0xFF
        self.cpu_advance()

    def cpu_move_reg_into_reg(self):
        """
        8st0 - LOAD Vs, Vt

        Move the value of the source register into the value of the target
        register. The calculation for the registers is performed on the
        operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      0
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] = self.cpu_registers['v'][cpu_source]
        self.cpu_advance()

    def cpu_logical_or(self):
        """
        8ts1 - OR   Vt, Vs
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] |= self.cpu_registers['v'][cpu_source]
        self.cpu_advance()

    def cpu_logical_and(self):
        """
        8ts2 - AND  Vt, Vs
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] &= self.cpu_registers['v'][cpu_source]
        self.cpu_advance()

    def cpu_exclusive_or(self):
        """
        8ts3 - XOR  Vt, Vs
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_registers['v'][cpu_target] ^= self.cpu_registers['v'][cpu_source]
        self.cpu_advance()

    def cpu_add_reg_to_reg(self):
        """
        8ts4 - ADD  Vt, Vs

        Add the value in the source register to the value in the target
        register, and store the result in the target register. The register
        calculations are as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused   target    source      4

        VF is set to 1 if the sum does not fit in a byte, 0 otherwise. The
        flag is written before the sum.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_v = self.cpu_registers['v']
        self.cpu_set_flag(1 if cpu_v[cpu_target] + cpu_v[cpu_source] > 0xFF else 0)
        cpu_v[cpu_target] = (cpu_v[cpu_target] + cpu_v[cpu_source]) & 0xFF
        self.cpu_advance()

    def cpu_subtract_reg_from_reg(self):
        """
        8ts5 - SUB  Vt, Vs

        Subtract the value in the source register from the value in the
        target register, and store the result in the target register. If a
        borrow is generated, VF is set to 0, otherwise 1.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_v = self.cpu_registers['v']
        self.cpu_set_flag(0 if cpu_v[cpu_source] > cpu_v[cpu_target] else 1)
        cpu_v[cpu_target] = (cpu_v[cpu_target] - cpu_v[cpu_source]) & 0xFF
        self.cpu_advance()

    def cpu_right_shift_reg(self):
        """
        8s06 - SHR  Vs

        Shift the bits in the specified register 1 bit to the right. With
        legacy shift flags, VF receives the low nibble of Vs rather than just
        bit 0. The register calculation is as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused   source      0         6
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_value = self.cpu_registers['v'][cpu_source]
        if self.cpu_legacy_shift_flags:
            self.cpu_set_flag(cpu_value & 0x0F)
        else:
            self.cpu_set_flag(cpu_value & 0x1)
        self.cpu_registers['v'][cpu_source] = self.cpu_registers['v'][cpu_source] >> 1
        self.cpu_advance()

    def cpu_subtract_reg_from_reg1(self):
        """
        8ts7 - SUBN Vt, Vs

        Subtract the value in the target register from the value in the
        source register, and store the result in the target register. If a
        borrow is generated, VF is set to 0, otherwise 1.
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        cpu_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_v = self.cpu_registers['v']
        self.cpu_set_flag(0 if cpu_v[cpu_target] > cpu_v[cpu_source] else 1)
        cpu_v[cpu_target] = (cpu_v[cpu_source] - cpu_v[cpu_target]) & 0xFF
        self.cpu_advance()

    def cpu_left_shift_reg(self):
        """
        8s0E - SHL  Vs

        Shift the bits in the specified register 1 bit to the left. With
        legacy shift flags, VF is computed as (Vs & 0xF000) >> 8, which is
        always 0 for a byte. Otherwise bit 7 is shifted into VF.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_value = self.cpu_registers['v'][cpu_source]
        if self.cpu_legacy_shift_flags:
            self.cpu_set_flag((cpu_value & 0xF000) >> 8)
        else:
            self.cpu_set_flag((cpu_value & 0x80) >> 7)
        self.cpu_registers['v'][cpu_source] = (self.cpu_registers['v'][cpu_source] << 1) & 0xFF
        self.cpu_advance()

    def cpu_skip_if_reg_not_equal_reg(self):
        """
        9st0 - SKNE Vs, Vt

        Skip if source register is not equal to target register.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_target = (self.cpu_operand & Y_MASK) >> 4
        self.cpu_skip_if(self.cpu_registers['v'][cpu_source] != self.cpu_registers['v'][cpu_target])

    def cpu_load_index_reg_with_value(self):
        """
        Annn - LOAD I, nnn

        Load index register with constant value. The calculation for the
        constant value is performed on the operand:

           Bits:  15-12     11-8      7-4       3-0
                  unused   constant  constant  constant
        """
        self.cpu_registers['index'] = self.cpu_operand & NNN_MASK
        self.cpu_advance()

    def cpu_jump_to_v0_plus_value(self):
        """
        Bnnn - JUMP V0 + nnn

        Load the program counter with the constant plus the value of V0.
        """
        self.cpu_registers['pc'] = (self.cpu_operand & NNN_MASK) + self.cpu_registers['v'][0]

    def cpu_generate_random_number(self):
        """
        Ctnn - RAND Vt, nn

        A random number between 0 and 255 is generated. The contents of it are
        then ANDed with the constant value passed in the operand. The result is
        stored in the target register. The register and constant values are
        calculated as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused    target    value    value
        """
        cpu_value = self.cpu_operand & NN_MASK
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['v'][cpu_target] = cpu_value & self.cpu_random.randint(0, 255)
        self.cpu_advance()

    def cpu_draw_sprite(self):
        """
        Dxyn - DRAW x, y, num_bytes

        Draws the sprite pointed to in the index register at the specified
        x and y coordinates. Drawing is done via an XOR routine, meaning that
        if the target pixel is already turned on, and a pixel is set to be
        turned on at that same location via the draw, then the pixel is turned
        off. Each sprite is 8 bits (1 byte) wide. The num_bytes parameter sets
        how tall the sprite is. Consecutive bytes in the memory pointed to by
        the index register make up the bytes of the sprite. For example,
        assume that the index register pointed to the following 7 bytes:

                       bit 0 1 2 3 4 5 6 7

           byte 0          0 1 1 1 1 1 0 0
           byte 1          0 1 0 0 0 0 0 0
           byte 2          0 1 0 0 0 0 0 0
           byte 3          0 1 1 1 1 1 0 0
           byte 4          0 1 0 0 0 0 0 0
           byte 5          0 1 0 0 0 0 0 0
           byte 6          0 1 1 1 1 1 0 0

        This would draw a character on the screen that looks like an 'E'. The
        x_source and y_source tell which registers contain the x and y
        coordinates for the sprite. VF is cleared first, and set to 1 if
        writing the sprite turns any lit pixel off.

           Bits:  15-12     11-8      7-4       3-0
                  unused    x_source  y_source  num_bytes
        """
        cpu_x_source = (self.cpu_operand & X_MASK) >> 8
        cpu_y_source = (self.cpu_operand & Y_MASK) >> 4
        cpu_x_pos = self.cpu_registers['v'][cpu_x_source]
        cpu_y_pos = self.cpu_registers['v'][cpu_y_source]
        cpu_num_bytes = self.cpu_operand & N_MASK
        cpu_index = self.cpu_registers['index']
        self.cpu_check_address(cpu_index, cpu_num_bytes)

        self.cpu_set_flag(0)
        cpu_sprite = self.cpu_memory[cpu_index:cpu_index + cpu_num_bytes]
        if self.cpu_display.draw_sprite(cpu_x_pos, cpu_y_pos, cpu_sprite):
            self.cpu_set_flag(1)
        self.cpu_advance()

    def cpu_skip_if_key_pressed(self):
        """
        Es9E - SKPR Vs

        Skip the next instruction if the key named by the source register is
        pressed. The keypad is read after a short settling delay.

           Bits:  15-12    11-8      7-4      3-0
                  unused   source     9        E
        """
        self.cpu_skip_if(self.cpu_read_key())

    def cpu_skip_if_key_not_pressed(self):
        """
        EsA1 - SKUP Vs
        """
        self.cpu_skip_if(not self.cpu_read_key())

    def cpu_read_key(self):
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_key_to_check = self.cpu_registers['v'][cpu_source] & 0xF
        return self.cpu_keypad.snapshot()[cpu_key_to_check]

    def cpu_move_delay_timer_into_reg(self):
        """
        Ft07 - LOAD Vt, DELAY

        Move the value of the delay timer into the target register. The
        register calculation is as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused    target     0         7
        """
        cpu_target = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['v'][cpu_target] = self.cpu_timers['delay']
        self.cpu_advance()

    def cpu_wait_for_keypress(self):
        """
        Ft0A - KEYD Vt

        Stop execution until a key is pressed. The program counter is left on
        this instruction; cpu_step completes it once a key is down, storing
        the key in Vt.
        """
        self.cpu_state = STATE_AWAITING_INPUT
        logger.debug("Waiting for key at PC %04X", self.cpu_registers['pc'])

    def cpu_move_reg_into_delay_timer(self):
        """
        Fs15 - LOAD DELAY, Vs
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_timers['delay'] = self.cpu_registers['v'][cpu_source]
        self.cpu_advance()

    def cpu_move_reg_into_sound_timer(self):
        """
        Fs18 - LOAD SOUND, Vs
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_timers['sound'] = self.cpu_registers['v'][cpu_source]
        self.cpu_advance()

    def cpu_add_reg_into_index(self):
        """
        Fs1E - ADD  I, Vs

        Add the value of the register into the index register value. VF is
        not affected.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index'] + self.cpu_registers['v'][cpu_source]
        self.cpu_registers['index'] = cpu_index & 0xFFFF
        self.cpu_advance()

    def cpu_load_index_with_reg_sprite(self):
        """
        Fs29 - LOAD I, Vs

        Load the index with the font sprite for the digit in the source
        register. All sprites are 5 bytes long, so the location of the
        specified sprite is its index multiplied by 5.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        self.cpu_registers['index'] = self.cpu_registers['v'][cpu_source] * FONT_SPRITE_SIZE
        self.cpu_advance()

    def cpu_store_bcd_in_memory(self):
        """
        Fs33 - BCD

        Take the value stored in source and place the digits in the following
        locations:

            hundreds   -> self.memory[index]
            tens       -> self.memory[index + 1]
            ones       -> self.memory[index + 2]

        For example, if the value is 123, then the following values will be
        placed at the specified locations:

             1 -> self.memory[index]
             2 -> self.memory[index + 1]
             3 -> self.memory[index + 2]
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index']
        self.cpu_check_address(cpu_index, 3)
        cpu_value = self.cpu_registers['v'][cpu_source]
        self.cpu_memory[cpu_index] = cpu_value // 100
        self.cpu_memory[cpu_index + 1] = (cpu_value // 10) % 10
        self.cpu_memory[cpu_index + 2] = cpu_value % 10
        self.cpu_advance()

    def cpu_store_regs_in_memory(self):
        """
        Fs55 - STOR [I], Vs

        Store registers V0 through Vs in the memory pointed to by the index
        register. The index register itself is left alone. The register
        calculation is as follows:

           Bits:  15-12     11-8      7-4       3-0
                  unused    source     5         5
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index']
        self.cpu_check_address(cpu_index, cpu_source + 1)
        for cpu_counter in range(cpu_source + 1):
            self.cpu_memory[cpu_index + cpu_counter] = self.cpu_registers['v'][cpu_counter]
        self.cpu_advance()

    def cpu_read_regs_from_memory(self):
        """
        Fs65 - LOAD Vs, [I]

        Read registers V0 through Vs from the memory pointed to by the index
        register. The index register itself is left alone.
        """
        cpu_source = (self.cpu_operand & X_MASK) >> 8
        cpu_index = self.cpu_registers['index']
        self.cpu_check_address(cpu_index, cpu_source + 1)
        for cpu_counter in range(cpu_source + 1):
            self.cpu_registers['v'][cpu_counter] = self.cpu_memory[cpu_index + cpu_counter]
        self.cpu_advance()
