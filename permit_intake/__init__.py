"""
Food establishment permit intake service.

Applications arrive through a web form, an external API, or a phone call
with a voice agent whose progress is mirrored live on the caller's phone.
"""

__version__ = "1.0.0"
