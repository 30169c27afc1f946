"""Report module for directory-pair comparison results.

This package contains:
- match: DirectoryPair and MatchResult, with msgpack serialization
- formatter: threshold filtering and the text and msgpack report writers
"""
