"""
Synthetic Hi-C contact maps for demos and tests.

Maps have a strong intra-chromosome diagonal with power-law decay, TAD-like
blocks, weak inter-chromosome background and uniform noise. All randomness
comes from ``np.random.default_rng(seed)`` so a seed always yields the same map.
"""
from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np

from .core.state import Contig, MapData

LOGGER = logging.getLogger(__name__)

DEFAULT_BP_PER_PIXEL = 1000


def _chromosome_lengths(size: int, num_chromosomes: int, rng: np.random.Generator) -> List[int]:
    raw = []
    for i in range(num_chromosomes):
        jitter = (rng.random() - 0.5) * 30
        raw.append(max(20, int(size / num_chromosomes * (1.5 - i / num_chromosomes) + jitter)))
    edges = np.floor(np.cumsum(raw) / float(sum(raw)) * size).astype(int)
    edges[-1] = size
    lengths = np.diff(np.concatenate(([0], edges))).tolist()
    if min(lengths) <= 0:
        raise ValueError(f"size={size} is too small for {num_chromosomes} chromosomes")
    return [int(length) for length in lengths]


def _contact_matrix(lengths: List[int], rng: np.random.Generator) -> np.ndarray:
    size = int(sum(lengths))
    idx = np.arange(size)
    dist = np.abs(idx[:, None] - idx[None, :]).astype(float)
    labels = np.repeat(np.arange(len(lengths)), lengths)
    same = labels[:, None] == labels[None, :]

    starts = np.repeat(np.cumsum([0] + lengths[:-1]), lengths)
    tad_sizes = 15 + rng.integers(0, 10, size=len(lengths))
    tads = (idx - starts) // np.repeat(tad_sizes, lengths)
    same_tad = same & (tads[:, None] == tads[None, :])

    value = np.where(same, (1.0 / (1.0 + dist * 0.1)) ** 1.5, 0.0)
    value += np.where(same, 0.3 * (1.0 / (1.0 + dist * 0.05)) ** 1.2, 0.0)
    value += np.where(same_tad, 0.15, 0.0)
    value += np.where(same, 0.0, 0.04 * rng.random((size, size)))
    value += 0.03 * rng.random((size, size))
    value = np.clip(value, 0.0, 1.0)
    # mirror the upper triangle so the map is exactly symmetric
    upper = np.triu(value)
    return (upper + np.triu(value, 1).T).astype(np.float32)


def _contigs(names: List[str], lengths: List[int], bp_per_pixel: int) -> Tuple[Contig, ...]:
    contigs = []
    offset = 0
    for idx, (name, length) in enumerate(zip(names, lengths)):
        contigs.append(
            Contig(
                name=name,
                original_index=idx,
                length=length * bp_per_pixel,
                pixel_start=offset,
                pixel_end=offset + length,
            )
        )
        offset += length
    return tuple(contigs)


def generate_synthetic_map(
    size: int = 1024,
    num_chromosomes: int = 12,
    seed: int = 0,
    *,
    bp_per_pixel: int = DEFAULT_BP_PER_PIXEL,
) -> MapData:
    """Return a correctly assembled map: one contig per chromosome, identity order."""

    rng = np.random.default_rng(seed)
    lengths = _chromosome_lengths(size, num_chromosomes, rng)
    matrix = _contact_matrix(lengths, rng)
    names = [f"chr{i + 1}" for i in range(num_chromosomes)]
    LOGGER.debug("generate_synthetic_map size=%s chromosomes=%s seed=%s", size, num_chromosomes, seed)
    return MapData(
        filename=f"synthetic-{size}-{seed}",
        texture_size=size,
        contigs=_contigs(names, lengths, bp_per_pixel),
        contact_map=matrix,
    )


def generate_misassembled_map(size: int = 1024, seed: int = 0) -> MapData:
    """Synthetic map with an inverted block and a swapped pair of blocks.

    Contig boundaries are those of the correct assembly; only the contact
    signal is rearranged, as if the sequence had been misplaced.
    """

    base = generate_synthetic_map(size, 8, seed)
    perm = np.arange(size)
    inv_start, inv_end = int(size * 0.30), int(size * 0.35)
    perm[inv_start:inv_end] = perm[inv_start:inv_end][::-1]
    a_start, a_end = int(size * 0.60), int(size * 0.65)
    b_start = int(size * 0.80)
    width = a_end - a_start
    block = perm[a_start:a_end].copy()
    perm[a_start:a_end] = perm[b_start : b_start + width]
    perm[b_start : b_start + width] = block
    matrix = base.contact_map[np.ix_(perm, perm)]
    return MapData(
        filename=f"misassembled-{size}-{seed}",
        texture_size=size,
        contigs=base.contigs,
        contact_map=matrix,
    )


def generate_chimeric_map(size: int = 512, num_chromosomes: int = 6, seed: int = 0) -> Tuple[MapData, int]:
    """Map whose first contig is a chimera of chromosomes 1 and 2.

    Returns the map and the junction's pixel offset inside that contig.
    """

    if num_chromosomes < 2:
        raise ValueError("A chimeric map needs at least two chromosomes")
    rng = np.random.default_rng(seed)
    lengths = _chromosome_lengths(size, num_chromosomes, rng)
    matrix = _contact_matrix(lengths, rng)
    junction = lengths[0]
    fused = [lengths[0] + lengths[1]] + lengths[2:]
    names = ["chr1_chr2"] + [f"chr{i + 1}" for i in range(2, num_chromosomes)]
    map_data = MapData(
        filename=f"chimeric-{size}-{seed}",
        texture_size=size,
        contigs=_contigs(names, fused, DEFAULT_BP_PER_PIXEL),
        contact_map=matrix,
    )
    return map_data, junction


__all__ = ["generate_synthetic_map", "generate_misassembled_map", "generate_chimeric_map"]
