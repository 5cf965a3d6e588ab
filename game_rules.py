"""Chain rules for scanned dice trays.

This module validates blocks (trays of dice) against the rules of the dice
chain game:

- The pip values of a block determine the colors its successor must show
  (1 red, 2 orange, 3 yellow, 4 green, 5 blue, 6 purple).
- Every non-genesis block builds on exactly one valid block in the previous
  column whose required colors equal its own colors (as a multiset).
- The pip total of a non-genesis block must not exceed the difficulty.
- The chain starts at the genesis block: 2 red, 2 orange, 2 yellow, 3 green.

Diagnostics never raise, they are collected per block in ValidatedBlock.errors.
Structural and threshold problems make a block invalid, a genesis pip total
that does not add up is only reported.

Author: Dice Chain Validation contributors
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

import numpy as np

import settings
from internal_data_classes import (
    DEFAULT_RULES,
    Block,
    RuleSet,
    ValidatedBlock,
    ValidationResult,
)

logger = logging.getLogger(__name__)


def required_colors_for(dice: Iterable, rules: Optional[RuleSet] = None) -> List[str]:
    """Get the colors required of the next block from a set of dice.

    Used by validation and by the review screen, which previews the next
    block's requirements while a die is being corrected.

    Args:
        dice (Iterable): Objects with a pips attribute (1-6)
        rules (RuleSet, optional): Rule set providing the value->color table

    Returns:
        List[str]: One color per die, in the dice order
    """
    rules = rules or DEFAULT_RULES
    return [rules.value_to_color[die.pips] for die in dice]


def required_colors(block: Block, rules: Optional[RuleSet] = None) -> List[str]:
    return required_colors_for(block.dice, rules)


def count_colors(colors: Iterable[str]) -> str:
    """Describe a color multiset, e.g. "2 red, 1 orange, 3 green"."""
    counts = Counter(colors)
    return ", ".join(
        f"{counts[color]} {color}" for color in settings.DICE_COLORS if counts[color] > 0
    )


def is_genesis_block(block: Block, rules: Optional[RuleSet] = None) -> bool:
    """Check if a block matches the genesis pattern, in any order."""
    rules = rules or DEFAULT_RULES
    return Counter(block.colors) == Counter(rules.genesis_pattern)


def can_be_predecessor(candidate: Block, block: Block, rules: Optional[RuleSet] = None) -> bool:
    """Check if candidate can be the predecessor of block.

    The block's dice COLORS must match the candidate's dice VALUES, mapped
    through the color table. Only the multisets are compared, dice order
    never matters.
    """
    return Counter(required_colors(candidate, rules)) == Counter(block.colors)


def assign_columns(blocks: List[Block], rules: Optional[RuleSet] = None) -> List[Block]:
    """Assign a generation column to every block from its horizontal position.

    The genesis block is column 0. The chain may grow to the right or to the
    left of it on the table, whichever side holds more blocks (ties grow right).
    Without a genesis block the leftmost block is used as the column 0 anchor.

    The process follows these steps:
    1. Anchor: Find the genesis block (or the leftmost block) and the growth direction
    2. Column Width: Estimate one column as 1.5 tray widths, a tray being 3 dice wide
    3. Assignment: Round the signed offset from the anchor to whole columns

    Args:
        blocks (List[Block]): Blocks from the grouper
        rules (RuleSet, optional): Rule set used to recognize the genesis block

    Returns:
        List[Block]: New blocks, same order, with column set (never below 0)
    """
    if not blocks:
        return []

    # ===== STEP 1: ANCHOR =====
    genesis_block = next(
        (block for block in blocks if is_genesis_block(block, rules)), None)

    if genesis_block is None:
        anchor_x = min(block.position[0] for block in blocks)
        direction = 1
        logger.debug("No genesis block found, anchoring columns at x=%.1f", anchor_x)
    else:
        anchor_x = genesis_block.position[0]
        blocks_to_right = sum(1 for block in blocks if block.position[0] > anchor_x)
        blocks_to_left = sum(1 for block in blocks if block.position[0] < anchor_x)
        direction = 1 if blocks_to_right >= blocks_to_left else -1
        logger.debug(
            "Genesis block %s at x=%.1f, chain grows %s",
            genesis_block.id, anchor_x, "right" if direction == 1 else "left",
        )

    # ===== STEP 2: COLUMN WIDTH =====
    tray_widths = [
        max(die.bounds.width for die in block.dice) * settings.TRAY_GRID_SIZE
        if block.dice else 0.0
        for block in blocks
    ]
    column_width = float(np.mean(tray_widths)) * settings.COLUMN_WIDTH_FACTOR

    # ===== STEP 3: ASSIGNMENT =====
    if column_width <= 0:
        # Degenerate boxes give no scale, everything stays in column 0
        return [block.with_column(0) for block in blocks]

    assigned_blocks = []
    for block in blocks:
        column_offset = (block.position[0] - anchor_x) * direction / column_width
        # Half columns round up
        column = int(np.floor(column_offset + 0.5))
        assigned_blocks.append(block.with_column(max(0, column)))

    return assigned_blocks


def _validate_block(
    block: Block,
    validated_blocks: List[ValidatedBlock],
    difficulty: int,
    rules: RuleSet,
) -> ValidatedBlock:
    errors: List[str] = []
    predecessor_id = None
    is_valid = True

    block_is_genesis = is_genesis_block(block, rules)

    if block_is_genesis:
        if block.column != 0:
            errors.append("Genesis block should be in column 0")
            is_valid = False

        # A wrong total on a genesis tray is most likely a misread pip
        if block.total != rules.genesis_total:
            errors.append(
                f"Genesis total {block.total} doesn't match expected {rules.genesis_total}")
    else:
        if block.total > difficulty:
            errors.append(f"Total {block.total} exceeds difficulty {difficulty}")
            is_valid = False

        predecessor_candidates = [
            validated_block
            for validated_block in validated_blocks
            if validated_block.column == block.column - 1 and validated_block.is_valid
        ]

        if not predecessor_candidates:
            errors.append(f"No valid blocks in column {block.column - 1} to build on")
            is_valid = False
        else:
            # First match wins when several candidates share a color signature
            predecessor = next(
                (
                    candidate
                    for candidate in predecessor_candidates
                    if can_be_predecessor(candidate.block, block, rules)
                ),
                None,
            )

            if predecessor is not None:
                predecessor_id = predecessor.id
            else:
                errors.append("Dice colors do not match any predecessor's values")
                is_valid = False

                if len(predecessor_candidates) == 1:
                    required = predecessor_candidates[0].required_colors
                    errors.append(
                        f"Required: {count_colors(required)}, Got: {count_colors(block.colors)}")

    return ValidatedBlock(
        block=block,
        is_genesis=block_is_genesis,
        predecessor_id=predecessor_id,
        is_valid=is_valid,
        errors=tuple(errors),
        required_colors=tuple(required_colors(block, rules)),
    )


def build_chain(
    blocks: List[Block],
    difficulty: int,
    rules: Optional[RuleSet] = None,
) -> List[ValidatedBlock]:
    """Validate every block and link it to its predecessor.

    Blocks are processed in ascending column order, ties keep their input
    order, so all candidates of column c-1 are settled before column c.

    Args:
        blocks (List[Block]): Blocks with columns assigned
        difficulty (int): Maximum pip total of a non-genesis block
        rules (RuleSet, optional): Rule set to validate against

    Returns:
        List[ValidatedBlock]: One validated block per input block, in validation order
    """
    rules = rules or DEFAULT_RULES
    validated_blocks: List[ValidatedBlock] = []

    for block in sorted(blocks, key=lambda block: block.column):
        validated_block = _validate_block(block, validated_blocks, difficulty, rules)
        validated_blocks.append(validated_block)

        logger.debug(
            "%s (column %d, total %d): %s%s",
            block.id, block.column, block.total,
            "valid" if validated_block.is_valid else "invalid",
            f" -> {validated_block.predecessor_id}" if validated_block.predecessor_id else "",
        )

    return validated_blocks


def find_longest_chain(validated_blocks: List[ValidatedBlock]) -> List[str]:
    """Find the longest chain of valid blocks starting at the genesis block.

    Only valid blocks with a recorded predecessor contribute edges. Among
    branches of equal length the first one found wins.

    Args:
        validated_blocks (List[ValidatedBlock]): Output of build_chain

    Returns:
        List[str]: Block ids from genesis to the deepest leaf, empty without genesis

    Raises:
        ValueError: If the predecessor links skip or repeat columns (not a forest)
    """
    if not validated_blocks:
        return []

    columns = {validated_block.id: validated_block.column for validated_block in validated_blocks}

    # ===== STEP 1: BUILD CHILDREN LISTS =====
    children: Dict[str, List[str]] = {}
    for validated_block in validated_blocks:
        if validated_block.predecessor_id and validated_block.is_valid:
            predecessor_column = columns.get(validated_block.predecessor_id)
            if predecessor_column is not None and predecessor_column != validated_block.column - 1:
                raise ValueError(
                    f"Block {validated_block.id} in column {validated_block.column} links to "
                    f"{validated_block.predecessor_id} in column {predecessor_column}"
                )
            children.setdefault(validated_block.predecessor_id, []).append(validated_block.id)

    # ===== STEP 2: FIND GENESIS =====
    genesis_blocks = [validated_block for validated_block in validated_blocks if validated_block.is_genesis]
    if not genesis_blocks:
        return []
    genesis = next(
        (validated_block for validated_block in genesis_blocks if validated_block.is_valid),
        genesis_blocks[0],
    )

    # ===== STEP 3: DEPTH FIRST SEARCH =====
    visiting = set()

    def longest_from_node(node_id: str) -> List[str]:
        if node_id in visiting:
            raise ValueError(f"Predecessor links form a cycle at {node_id}")
        visiting.add(node_id)

        longest_child_chain: List[str] = []
        for child_id in children.get(node_id, []):
            child_chain = longest_from_node(child_id)
            if len(child_chain) > len(longest_child_chain):
                longest_child_chain = child_chain

        visiting.discard(node_id)
        return [node_id] + longest_child_chain

    return longest_from_node(genesis.id)


def validate(
    blocks: List[Block],
    difficulty: int = settings.DEFAULT_DIFFICULTY,
    rules: Optional[RuleSet] = None,
) -> ValidationResult:
    """Validate all blocks and return the complete result of one scan.

    Args:
        blocks (List[Block]): Blocks with columns assigned
        difficulty (int): Maximum pip total of a non-genesis block
        rules (RuleSet, optional): Rule set to validate against

    Returns:
        ValidationResult: Validated blocks, longest chain and counts
    """
    validated_blocks = build_chain(blocks, difficulty, rules)
    longest_chain = find_longest_chain(validated_blocks)

    valid_blocks = sum(1 for validated_block in validated_blocks if validated_block.is_valid)

    return ValidationResult(
        blocks=tuple(validated_blocks),
        longest_chain=tuple(longest_chain),
        total_blocks=len(validated_blocks),
        valid_blocks=valid_blocks,
        invalid_blocks=len(validated_blocks) - valid_blocks,
        difficulty=difficulty,
    )


def calculate_scores(result: ValidationResult) -> Dict[str, int]:
    """Score one point per non-genesis block on the longest chain, per tray color."""
    scores: Dict[str, int] = {}

    for block_id in result.longest_chain:
        validated_block = result.get_block(block_id)
        if validated_block is None or validated_block.is_genesis:
            continue
        scores[validated_block.tray_color] = scores.get(validated_block.tray_color, 0) + 1

    return scores
