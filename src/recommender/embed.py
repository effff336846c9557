"""Text embeddings for item content.

Turns an item's name and description into a fixed-length vector. The default
provider hashes character n-grams with scikit-learn's HashingVectorizer, so it
needs no fitted vocabulary, works on any script, and gives the same vector for
the same text in every process.

Any object with an ``embed(text) -> np.ndarray`` method can stand in for it,
e.g. a client for a hosted embedding model.
"""

import logging
from typing import Tuple

import numpy as np
from sklearn.feature_extraction.text import HashingVectorizer

from src.config import DEFAULT_EMBEDDING_DIM
from src.exceptions import EmbeddingError

# Configure module logger
logger = logging.getLogger(__name__)

# Constants
DEFAULT_NGRAM_RANGE = (2, 4)


def build_item_text(name: str, description: str) -> str:
    """Text that represents an item for embedding purposes."""
    return f"{name}\n{description}"


class HashingTextEmbedder:
    """Hashed character n-gram embeddings.

    Attributes:
        embedding_dim: Length of produced vectors.
        vectorizer: Underlying HashingVectorizer.
    """

    def __init__(
        self,
        embedding_dim: int = DEFAULT_EMBEDDING_DIM,
        ngram_range: Tuple[int, int] = DEFAULT_NGRAM_RANGE,
    ):
        if embedding_dim <= 0:
            raise ValueError(f"embedding_dim must be positive, got {embedding_dim}")

        self.embedding_dim = embedding_dim
        self.vectorizer = HashingVectorizer(
            n_features=embedding_dim,
            analyzer="char_wb",
            ngram_range=ngram_range,
            lowercase=True,
            alternate_sign=False,
            norm="l2",
        )

        logger.info(
            f"Initialized HashingTextEmbedder: embedding_dim={embedding_dim}, "
            f"ngram_range={ngram_range}"
        )

    def embed(self, text: str) -> np.ndarray:
        """Embed one piece of text.

        Args:
            text: Text to embed.

        Returns:
            L2-normalized float32 vector of length ``embedding_dim``.

        Raises:
            EmbeddingError: If the text has no content to embed.
        """
        if not text or not text.strip():
            raise EmbeddingError("text is empty")

        vector = self.vectorizer.transform([text]).toarray()[0].astype(np.float32)

        if not np.any(vector):
            raise EmbeddingError(
                "text produced an all-zero vector",
                details={"text_length": len(text)},
            )

        return vector
