"""Oscilloscope and spectrum analyser engine for audio-rate signals, with serial-port streams."""

__version__ = "0.1.0"