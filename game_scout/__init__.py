"""
game_scout - metadata, embeddings and similarity search for online game experiences.

Long-running corpus commands run as durable background jobs; similarity
queries are answered synchronously over the embedding corpus.
"""

__version__ = "0.3.0"
