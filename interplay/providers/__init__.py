from .base import DataSourceBase, PageFetcherBase, TextGeneratorBase
from .claude_text_generator import ClaudeTextGenerator
from .http_page_fetcher import HttpPageFetcher
from .json_file_source import JsonFileDataSource

__all__ = [
    "DataSourceBase",
    "PageFetcherBase",
    "TextGeneratorBase",
    "ClaudeTextGenerator",
    "HttpPageFetcher",
    "JsonFileDataSource",
]
