class Chip8Exception(Exception):
    """
    Base class for all fatal and reportable errors raised by the Chip 8 core.
    """


class UnknownOpCodeException(Chip8Exception):
    """
    A class to raise unknown op code exceptions.
    """
    def __init__(self, op_code):
        Chip8Exception.__init__(self, "Unknown op-code: {:04X}".format(op_code))
        self.op_code = op_code


class MemoryAccessException(Chip8Exception):
    """
    Raised when an instruction or a program load would touch memory outside
    of the 4096 byte address space.
    """
    def __init__(self, address, length=1):
        Chip8Exception.__init__(
            self, "Memory access out of range: {:04X} (+{})".format(address, length))
        self.address = address
        self.length = length


class StackUnderflowException(Chip8Exception):
    """
    Raised when a return is executed with an empty call stack.
    """
    def __init__(self, pc):
        Chip8Exception.__init__(self, "Stack underflow at PC {:04X}".format(pc))
        self.pc = pc


class StackOverflowException(Chip8Exception):
    """
    Raised when a call would exceed the maximum call stack depth.
    """
    def __init__(self, pc, depth):
        Chip8Exception.__init__(
            self, "Stack overflow at PC {:04X} (depth {})".format(pc, depth))
        self.pc = pc
        self.depth = depth
