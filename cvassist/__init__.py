"""CV assistant: semantic question answering over a curated skills knowledge base.

Query pipeline:
- Input validation and availability window
- Project-aware embedding and resilient vector search (Chroma, SQLite scan fallback)
- Experience-weighted ranking
- Daily inference budget guard and laconic response shaping
"""

__version__ = "0.3.0"
