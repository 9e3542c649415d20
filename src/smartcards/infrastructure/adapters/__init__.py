# Infrastructure Adapters Package
from .memory_store import InMemoryStatsStore
from .openai_generator import OpenAIContentGenerator
from .rest_store import RestStatsStore

__all__ = ["InMemoryStatsStore", "RestStatsStore", "OpenAIContentGenerator"]
