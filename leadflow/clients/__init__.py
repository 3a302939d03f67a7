from .apify import ApifyClient
from .text import AgentTextGenerator, TextGenerator

__all__ = ["ApifyClient", "AgentTextGenerator", "TextGenerator"]
