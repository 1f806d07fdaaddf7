"""
LLM keyword extraction and the tier cascade.

LLMs only turn a query into search keywords. Retrieval and answer
selection stay deterministic.
"""
