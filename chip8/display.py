import threading

# The dimensions of the Chip 8 display in pixels
SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32
SCREEN_SIZE = SCREEN_WIDTH * SCREEN_HEIGHT

# Every sprite row is one byte wide
SPRITE_WIDTH = 8


class DisplayBuffer(object):
    """
    The Chip 8 frame buffer. The original display was 64 x 32 with 2 colors,
    which is stored here as one byte per pixel: 0 (off) and 1 (on), row
    major, so that pixel (x, y) lives at index x + y * 64.

    The buffer is only ever changed by the CPU through draw_sprite and
    clear_screen. Either of these raises the redraw flag, which the host
    lowers again by consuming a frame.
    """
    def __init__(self):
        self.display_lock = threading.Lock()
        self.display_pixels = bytearray(SCREEN_SIZE)
        self.display_redraw = True

    def clear_screen(self):
        """
        Turns off all the pixels on the screen and requests a redraw.
        """
        with self.display_lock:
            self.display_pixels = bytearray(SCREEN_SIZE)
            self.display_redraw = True

    def draw_sprite(self, x_pos, y_pos, sprite_rows):
        """
        XOR a sprite onto the buffer. Each byte in sprite_rows is one row of
        8 pixels, most significant bit on the left. A pixel lands at the
        linear index (x + column + (y + row) * 64) mod 2048, so a sprite
        running off the right edge continues on the next row of the buffer
        and one running off the bottom continues at the top.

        :param x_pos: the X position of the sprite
        :param y_pos: the Y position of the sprite
        :param sprite_rows: the bytes making up the sprite
        :return: True if any lit pixel was turned off
        """
        collision = False
        with self.display_lock:
            for row, sprite_byte in enumerate(sprite_rows):
                for column in range(SPRITE_WIDTH):
                    if not sprite_byte & (0x80 >> column):
                        continue
                    index = (x_pos + column + (y_pos + row) * SCREEN_WIDTH) % SCREEN_SIZE
                    if self.display_pixels[index] == 1:
                        collision = True
                    self.display_pixels[index] ^= 1
            self.display_redraw = True
        return collision

    def get_pixel(self, x_pos, y_pos):
        """
        Returns whether the pixel is on (1) or off (0) at the specified
        location.
        """
        with self.display_lock:
            return self.display_pixels[x_pos + y_pos * SCREEN_WIDTH]

    @property
    def redraw_requested(self):
        return self.display_redraw

    def pixels(self):
        """
        Returns a copy of the whole buffer without touching the redraw flag.
        """
        with self.display_lock:
            return bytes(self.display_pixels)

    def consume_frame(self):
        """
        Hand a frame to the host renderer. If the buffer changed since the
        last call, a copy of it is returned and the redraw flag is lowered,
        otherwise None is returned.

        :return: a bytes copy of the buffer, or None
        """
        with self.display_lock:
            if not self.display_redraw:
                return None
            self.display_redraw = False
            return bytes(self.display_pixels)
