"""Vector math over embedding tensors."""

import logging
from typing import Iterable, Sequence, Union

import torch

logger = logging.getLogger(__name__)

VectorLike = Union[torch.Tensor, Sequence[float]]


def as_vector(values: VectorLike) -> torch.Tensor:
    """Coerce a sequence or tensor to a detached 1-D float64 tensor."""
    if isinstance(values, torch.Tensor):
        vec = values.detach().to(dtype=torch.float64, device="cpu")
    else:
        vec = torch.tensor(list(values), dtype=torch.float64)
    return vec.reshape(-1)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine similarity between two vectors.

    Returns 0.0 when either vector is zero or when the dimensions differ;
    the latter is logged and treated as "no signal".
    """
    a = as_vector(a)
    b = as_vector(b)
    if a.numel() != b.numel():
        logger.warning("Vector dimension mismatch: %d vs %d", a.numel(), b.numel())
        return 0.0

    norm_a = torch.linalg.vector_norm(a).item()
    norm_b = torch.linalg.vector_norm(b).item()
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return torch.dot(a, b).item() / (norm_a * norm_b)


def centroid(vectors: Iterable[torch.Tensor]) -> torch.Tensor:
    """Component-wise mean. Empty input gives an empty vector."""
    vectors = list(vectors)
    if not vectors:
        return torch.empty(0, dtype=torch.float64)

    dim = vectors[0].numel()
    usable = [v for v in vectors if v.numel() == dim]
    if len(usable) != len(vectors):
        logger.warning(
            "Dropped %d vectors with mismatched dimension from centroid",
            len(vectors) - len(usable),
        )
    return torch.stack([v.to(torch.float64) for v in usable]).mean(dim=0)
