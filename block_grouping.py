"""Block grouping for scanned dice trays.

This module turns the flat list of dice reported by the detector into blocks
(trays of ~9 dice). It removes duplicate detections of the same die, clusters
the remaining dice by spatial proximity and offers the small editing helpers
used when a reviewer corrects a misread die before validation.

Dependencies:
    - NumPy: For numerical operations and array handling
    - scikit-learn: For clustering dice into trays
    - scipy: For pairwise distance calculations

Author: Dice Chain Validation contributors
"""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist, squareform
from sklearn import cluster

import settings
from internal_data_classes import Block, DieObservation, Rect

logger = logging.getLogger(__name__)


def overlap_ratio(a: Rect, b: Rect) -> float:
    """Calculate the intersection over union of two rectangles.

    Args:
        a (Rect): First rectangle
        b (Rect): Second rectangle

    Returns:
        float: Intersection area divided by union area, 0 if they do not intersect
    """
    left = max(a.x, b.x)
    top = max(a.y, b.y)
    right = min(a.x + a.width, b.x + b.width)
    bottom = min(a.y + a.height, b.y + b.height)

    if right <= left or bottom <= top:
        return 0.0

    intersection_area = (right - left) * (bottom - top)
    union_area = a.area + b.area - intersection_area
    if union_area <= 0:
        return 0.0

    return intersection_area / union_area


def _detection_rank(die: DieObservation) -> Tuple[float, float, float, float, float]:
    # Highest confidence first, then top-left-most, then smallest box
    return (-die.confidence, die.bounds.x, die.bounds.y, die.bounds.width, die.bounds.height)


def remove_duplicate_detections(
    dice: List[DieObservation],
    overlap_threshold: float = settings.DUPLICATE_OVERLAP_THRESHOLD,
) -> List[DieObservation]:
    """Remove overlapping detections of the same die.

    The same physical die is sometimes picked up by two color masks. Whenever
    two detections overlap by more than the threshold, the one with the higher
    confidence is kept. Detections are visited in a fixed order (confidence
    descending, then x, y, width, height ascending) so the surviving set does
    not depend on the order the detector reported them in.

    Args:
        dice (List[DieObservation]): Raw detections
        overlap_threshold (float): Overlap ratio above which two detections are duplicates

    Returns:
        List[DieObservation]: Surviving detections, highest confidence first
    """
    kept_dice: List[DieObservation] = []

    for die in sorted(dice, key=_detection_rank):
        duplicate_of = next(
            (
                kept_die
                for kept_die in kept_dice
                if overlap_ratio(die.bounds, kept_die.bounds) > overlap_threshold
            ),
            None,
        )
        if duplicate_of is None:
            kept_dice.append(die)
        else:
            logger.debug(
                "Dropping %s die at (%.0f, %.0f), duplicate of %s die (confidence %.2f <= %.2f)",
                die.color, die.bounds.x, die.bounds.y, duplicate_of.color,
                die.confidence, duplicate_of.confidence,
            )

    return kept_dice


def group_into_blocks(dice: List[DieObservation]) -> List[Block]:
    """Group detected dice into blocks using spatial clustering.

    Dice of one tray lie close together, trays are separated by a gap. Any two
    dice whose centers are closer than 2.5 average die sizes are linked, and
    every connected group of linked dice is one cluster (single linkage).

    The clustering process follows these steps:
    1. Ordering: Sort dice by center x so cluster numbering runs left to right
    2. Threshold: Derive the link distance from the average die size
    3. Clustering: Find connected groups of linked dice with DBSCAN
    4. Block Creation: Keep clusters of 7-11 dice as blocks, drop the rest

    Args:
        dice (List[DieObservation]): Deduplicated dice observations

    Returns:
        List[Block]: Blocks in order of their leftmost die, column still 0
    """
    # Skip processing if no dice were detected
    if not dice:
        return []

    # ===== STEP 1: ORDERING =====
    sorted_dice = sorted(dice, key=lambda die: die.center)
    die_centers = np.array([die.center for die in sorted_dice], dtype=float)

    # ===== STEP 2: THRESHOLD =====
    average_die_size = np.mean(
        [(die.bounds.width + die.bounds.height) / 2 for die in sorted_dice]
    )
    cluster_threshold = average_die_size * settings.CLUSTER_DISTANCE_FACTOR

    # ===== STEP 3: CLUSTERING =====
    # Distance matrix between all die centers (1x1 zero matrix for a single die)
    distance_matrix = squareform(pdist(die_centers))

    # Linked dice get distance 0, everything else 1, so eps=0.5 with
    # min_samples=1 yields exactly the connected components of the link graph
    link_matrix = np.where(distance_matrix < cluster_threshold, 0.0, 1.0)
    np.fill_diagonal(link_matrix, 0.0)

    clustering = cluster.DBSCAN(
        eps=0.5, min_samples=1, metric="precomputed").fit(link_matrix)

    # ===== STEP 4: BLOCK CREATION =====
    blocks: List[Block] = []
    for cluster_index in range(max(clustering.labels_) + 1):
        cluster_dice = [
            die
            for die, label in zip(sorted_dice, clustering.labels_)
            if label == cluster_index
        ]

        # Only trays with 9 dice (+/- 2 detection errors) can be validated
        if not settings.MIN_BLOCK_DICE <= len(cluster_dice) <= settings.MAX_BLOCK_DICE:
            logger.debug(
                "Discarding cluster of %d dice near (%.0f, %.0f)",
                len(cluster_dice), cluster_dice[0].center[0], cluster_dice[0].center[1],
            )
            continue

        blocks.append(
            Block(
                id=f"block-{len(blocks)}",
                dice=tuple(cluster_dice),
                tray_color=settings.DEFAULT_TRAY_COLOR,
                column=0,  # Computed later by the column assigner
            )
        )

    logger.debug(
        "Grouped %d dice into %d blocks (link distance %.1f px)",
        len(dice), len(blocks), cluster_threshold,
    )
    return blocks


def find_die_at(blocks: List[Block], x: float, y: float) -> Optional[Tuple[int, int]]:
    """Find the die under an image point.

    Args:
        blocks (List[Block]): Blocks shown to the reviewer
        x (float): Point x in image pixels
        y (float): Point y in image pixels

    Returns:
        Optional[Tuple[int, int]]: (block index, die index) of the first die containing
        the point, or None if the point hits no die
    """
    for block_index, block in enumerate(blocks):
        for die_index, die in enumerate(block.dice):
            if die.bounds.contains(x, y):
                return block_index, die_index
    return None


def _replace_die(block: Block, die_index: int, **changes) -> Block:
    dice = list(block.dice)
    dice[die_index] = replace(dice[die_index], **changes)
    return replace(block, dice=tuple(dice))


def change_die_color(block: Block, die_index: int, color: str) -> Block:
    """Return a copy of the block with one die's color corrected."""
    return _replace_die(block, die_index, color=color)


def change_die_pips(block: Block, die_index: int, pips: int) -> Block:
    """Return a copy of the block with one die's pip count corrected.

    The block total is derived from the dice, so the copy reports the new total.
    """
    return _replace_die(block, die_index, pips=pips)
