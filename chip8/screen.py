from pygame import display, HWSURFACE, DOUBLEBUF, Color, draw

from chip8.display import SCREEN_HEIGHT, SCREEN_WIDTH

SCREEN_NAME = 'CHIP-8'

# The depth of the screen is the number of bits used to represent the color
# of a pixel.
SCREEN_DEPTH = 8

# The colors of the pixels to draw. The Chip 8 supports two colors: 0 (off)
# and 1 (on). The format of the colors is in RGBA format.
PIXEL_COLORS = {
    0: Color(0, 0, 0, 255),
    1: Color(250, 250, 250, 255)
}


def pixel_rectangles(pixels, scaling_ratio):
    """
    Work out the window rectangles covering the lit pixels of a frame.

    :param pixels: a 64 x 32 frame, one byte per pixel, row major
    :param scaling_ratio: the size of one Chip 8 pixel in window pixels
    :return: a list of (x, y, width, height) tuples
    """
    rectangles = []
    for index, pixel in enumerate(pixels):
        if pixel:
            x_axis_position = (index % SCREEN_WIDTH) * scaling_ratio
            y_axis_position = (index // SCREEN_WIDTH) * scaling_ratio
            rectangles.append(
                (x_axis_position, y_axis_position, scaling_ratio, scaling_ratio))
    return rectangles


class Screen(object):
    """
    A class to draw frames of the Chip 8 display buffer in a pygame window.
    The original Chip 8 screen was 64 x 32 with 2 colors. In this emulator,
    this translates to color 0 (off) and color 1 (on).
    """
    def __init__(self, ratio):
        """
        Initializes the main screen. The scale factor is used to modify
        the size of the main screen, since the original resolution of the
        Chip 8 was 64 x 32, which is quite small.

        :param ratio: the scaling factor to apply to the screen
        """
        self.screen_height = SCREEN_HEIGHT
        self.screen_width = SCREEN_WIDTH
        self.scaling_ratio = ratio
        self.screen_surface = None

    def init_display(self):
        """
        Attempts to initialize a screen with the specified height and width.
        The screen will by default be of depth SCREEN_DEPTH, and will be
        double-buffered in hardware (if possible).
        """
        display.init()
        self.screen_surface = display.set_mode(
            ((self.screen_width * self.scaling_ratio),
             (self.screen_height * self.scaling_ratio)),
            HWSURFACE | DOUBLEBUF,
            SCREEN_DEPTH)
        display.set_caption(SCREEN_NAME)
        self.screen_surface.fill(PIXEL_COLORS[0])
        display.flip()

    def draw_frame(self, pixels):
        """
        Paint a whole frame onto the back buffer. Call update_screen to show
        it.

        :param pixels: a 64 x 32 frame, one byte per pixel, row major
        """
        self.screen_surface.fill(PIXEL_COLORS[0])
        for rectangle in pixel_rectangles(pixels, self.scaling_ratio):
            draw.rect(self.screen_surface, PIXEL_COLORS[1], rectangle)

    def set_paused(self, paused):
        display.set_caption(SCREEN_NAME + (' (Paused)' if paused else ''))

    @staticmethod
    def update_screen():
        """
        Updates the display by swapping the back buffer and screen buffer.
        According to the pygame documentation, the flip should wait for a
        vertical retrace when both HWSURFACE and DOUBLEBUF are set on the
        surface.
        """
        display.flip()

    @staticmethod
    def close():
        display.quit()
