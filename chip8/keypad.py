import threading

# The number of keys on the Chip 8 hex keypad
NUM_KEYS = 0x10


class Keypad(object):
    """
    The input latch of the Chip 8. The host writes the state of the 16 hex
    keys (0 - F) and the CPU only ever reads them. Since the host and the CPU
    may live on different threads, every access goes through a lock, and the
    CPU works from a snapshot taken once per cycle.
    """
    def __init__(self):
        self.keypad_lock = threading.Lock()
        self.keypad_keys = [False] * NUM_KEYS

    def press(self, key_index):
        """
        Mark the specified key as pressed.

        :param key_index: the key to press (0x0 - 0xF)
        """
        self.set_key(key_index, True)

    def release(self, key_index):
        """
        Mark the specified key as released.

        :param key_index: the key to release (0x0 - 0xF)
        """
        self.set_key(key_index, False)

    def set_key(self, key_index, pressed):
        if not 0 <= key_index < NUM_KEYS:
            raise ValueError("Invalid key: {}".format(key_index))
        with self.keypad_lock:
            self.keypad_keys[key_index] = bool(pressed)

    def set_keys(self, states):
        """
        Replace the state of all 16 keys at once.

        :param states: an iterable of 16 truthy / falsy values
        """
        states = [bool(state) for state in states]
        if len(states) != NUM_KEYS:
            raise ValueError("Expected {} key states, got {}".format(NUM_KEYS, len(states)))
        with self.keypad_lock:
            self.keypad_keys = states

    def release_all(self):
        with self.keypad_lock:
            self.keypad_keys = [False] * NUM_KEYS

    def is_pressed(self, key_index):
        with self.keypad_lock:
            return self.keypad_keys[key_index]

    def snapshot(self):
        """
        Returns a copy of the key states that will not change underneath the
        caller.

        :return: a tuple of 16 booleans
        """
        with self.keypad_lock:
            return tuple(self.keypad_keys)
