from .feed import FeedBundle, FeedJsonParser, ParseIssue, ParseReport

__all__ = [
    "FeedBundle",
    "FeedJsonParser",
    "ParseIssue",
    "ParseReport",
]
