import logging
import math
from array import array

import pygame

logger = logging.getLogger(__name__)

# Mixer settings: 16-bit signed mono
SAMPLE_RATE = 44100
SAMPLE_SIZE = -16
CHANNELS = 1

# The tone played when the sound timer runs out
BEEP_FREQUENCY = 440.0
BEEP_VOLUME = 0.25
BEEP_DURATION = 0.1


def pre_init_mixer():
    """
    Request the mixer format. This must run before pygame.init(), which
    otherwise starts the mixer with its own defaults.
    """
    pygame.mixer.pre_init(SAMPLE_RATE, SAMPLE_SIZE, CHANNELS)


def interleave(samples, channels):
    """
    Repeat every sample once per output channel.
    """
    if channels == 1:
        return samples
    return array('h', (sample for sample in samples for _ in range(channels)))


def sine_wave(frequency, volume, duration, sample_rate=SAMPLE_RATE):
    """
    Generate a sine wave as signed 16-bit samples.

    :param frequency: the frequency of the tone in Hz
    :param volume: the amplitude, between 0 and 1
    :param duration: the length of the tone in seconds
    :param sample_rate: samples per second
    :return: an array of signed 16-bit integers
    """
    num_samples = int(duration * sample_rate)
    amplitude = volume * 32767
    return array('h', (
        int(math.sin(2 * math.pi * frequency * index / sample_rate) * amplitude)
        for index in range(num_samples)))


class Buzzer(object):
    """
    Plays a short tone whenever the Chip 8 sound timer signals a beep. If the
    mixer cannot be started, beeps are dropped.
    """
    def __init__(self, frequency=BEEP_FREQUENCY, volume=BEEP_VOLUME,
                 duration=BEEP_DURATION):
        self.buzzer_frequency = frequency
        self.buzzer_volume = volume
        self.buzzer_duration = duration
        self.buzzer_sound = None

    def init_mixer(self):
        """
        Start the mixer if pygame.init() has not, then build the tone in
        whatever format the mixer ended up with.
        """
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(SAMPLE_RATE, SAMPLE_SIZE, CHANNELS)
        except pygame.error as exc:
            logger.warning("Audio unavailable: %s", exc)
            return
        mixer_settings = pygame.mixer.get_init()
        if mixer_settings is None:
            logger.warning("Audio unavailable: mixer did not start")
            return
        sample_rate, sample_size, channels = mixer_settings
        if sample_size != SAMPLE_SIZE:
            logger.warning("Audio unavailable: unsupported sample size %d", sample_size)
            return
        samples = sine_wave(self.buzzer_frequency, self.buzzer_volume,
                            self.buzzer_duration, sample_rate)
        self.buzzer_sound = pygame.mixer.Sound(buffer=interleave(samples, channels).tobytes())
        logger.debug("Mixer running at %d Hz, %d channel(s)", sample_rate, channels)

    def beep(self):
        if self.buzzer_sound is not None:
            self.buzzer_sound.play()

    def close(self):
        if self.buzzer_sound is not None:
            pygame.mixer.quit()
            self.buzzer_sound = None
