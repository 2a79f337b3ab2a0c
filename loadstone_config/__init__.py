"""Configuration model, RON storage and source generation for Loadstone bootloader builds."""

__version__ = "0.1.0"