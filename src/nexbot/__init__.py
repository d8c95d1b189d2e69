"""nexbot - plugin-based Telegram userbot"""

__version__ = "1.0.1"
