"""Knowledge base module for skill vector search.

Two interchangeable vector backends sit behind one async interface:
- Primary: approximate nearest-neighbour index (ChromaDB, cosine space)
- Secondary: brute-force cosine scan over raw float32 vectors in SQLite

Reindexing re-embeds skill records in checkpointed, lock-guarded batches.
"""

__version__ = "0.3.0"
