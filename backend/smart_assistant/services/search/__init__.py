"""Local query classification, synonym expansion and search-index access."""
