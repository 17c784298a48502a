"""Vector codec — float32 little-endian blobs for the email_embeddings table."""

from typing import Sequence

import numpy as np

from semantic_triage.exceptions import CorruptData

# 4 bytes per element, no header or length prefix
_DTYPE = np.dtype("<f4")


def encode_vector(vector: Sequence[float]) -> bytes:
    """Serialize a vector to contiguous little-endian float32 bytes."""
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def decode_vector(data: bytes) -> list[float]:
    """Deserialize bytes produced by encode_vector.

    Raises CorruptData if the length is not a multiple of 4.
    """
    if len(data) % _DTYPE.itemsize:
        raise CorruptData(
            f"Embedding blob of {len(data)} bytes is not a multiple of {_DTYPE.itemsize}"
        )
    return np.frombuffer(data, dtype=_DTYPE).tolist()
