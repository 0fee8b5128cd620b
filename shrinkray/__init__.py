"""
shrinkray - plan and run size-constrained H.264/AAC conversions with ffmpeg.
"""

__version__ = "0.1.0"
