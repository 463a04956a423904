"""Drive Tobii Ghost profiles from TikTok LIVE chat commands."""

__version__ = "0.1.0"
