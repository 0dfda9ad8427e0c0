"""Clip Stitch - batch clip extraction and recombination.

Reads editing instructions from a Notion database, cuts each clip with
ffmpeg, stitches grouped clips into a crossfaded video or a palette-optimised
GIF, and records every finished artifact in a second Notion database.
"""

__version__ = "0.1.0"
