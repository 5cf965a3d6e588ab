"""Dice Chain Scan Report.

This module runs the full scan pipeline on a set of detected dice and prints
the validation report. The detector output is read from a JSON file holding a
list of dice (or an object with a "dice" list), each with color, pips,
confidence and bounds {x, y, width, height}.

The pipeline follows these steps:
1. Deduplication: Drop overlapping detections of the same die
2. Grouping: Cluster dice into blocks (trays)
3. Column Assignment: Place blocks into generations starting at genesis
4. Validation: Check every block against the chain rules

Usage:
    python scan_report.py observations.json --difficulty 25 [--json] [--verbose]

Author: Dice Chain Validation contributors
"""

# External dependencies
import argparse
import json
import logging
import sys
from typing import List, Optional

# Internal dependencies
import settings
from block_grouping import group_into_blocks, remove_duplicate_detections
from game_rules import assign_columns, calculate_scores, validate
from internal_data_classes import DieObservation, RuleSet, ValidationResult

logger = logging.getLogger(__name__)


def process_observations(
    dice: List[DieObservation],
    difficulty: int = settings.DEFAULT_DIFFICULTY,
    rules: Optional[RuleSet] = None,
) -> ValidationResult:
    """Run detector output through the whole validation pipeline.

    Args:
        dice (List[DieObservation]): Dice reported by the detector
        difficulty (int): Maximum pip total of a non-genesis block
        rules (RuleSet, optional): Rule set to validate against

    Returns:
        ValidationResult: The report of this scan
    """
    # ===== STEP 1: DEDUPLICATION =====
    unique_dice = remove_duplicate_detections(dice)

    # ===== STEP 2: GROUPING =====
    blocks = group_into_blocks(unique_dice)

    # ===== STEP 3: COLUMN ASSIGNMENT =====
    blocks = assign_columns(blocks, rules)

    # ===== STEP 4: VALIDATION =====
    result = validate(blocks, difficulty, rules)

    logger.info(
        "Scanned %d dice (%d unique): %d blocks, %d valid, chain length %d",
        len(dice), len(unique_dice), result.total_blocks, result.valid_blocks,
        len(result.longest_chain),
    )
    return result


def load_observations(path: str) -> List[DieObservation]:
    """Read detector output from a JSON file.

    Raises:
        ValueError: If the file does not hold a list of valid dice
    """
    with open(path, encoding="utf-8") as observation_file:
        data = json.load(observation_file)

    if isinstance(data, dict):
        data = data.get("dice")
    if not isinstance(data, list):
        raise ValueError("Expected a list of dice or an object with a 'dice' list")

    try:
        return [DieObservation.from_dict(entry) for entry in data]
    except (KeyError, TypeError) as error:
        raise ValueError(f"Malformed die record: {error}") from error


def format_report(result: ValidationResult) -> str:
    """Render a validation result as plain text, one section per block."""
    chain_block_ids = set(result.longest_chain)
    lines = [
        f"Blocks: {result.total_blocks}  Valid: {result.valid_blocks}  "
        f"Invalid: {result.invalid_blocks}  Difficulty: {result.difficulty}",
        "Longest chain: " + (" -> ".join(result.longest_chain) or "(none)"),
        "",
    ]

    for validated_block in result.blocks:
        markers = []
        if validated_block.is_genesis:
            markers.append("genesis")
        if validated_block.id in chain_block_ids:
            markers.append("in chain")
        status = "VALID" if validated_block.is_valid else "INVALID"

        lines.append(
            f"[{status}] {validated_block.id}  column {validated_block.column}  "
            f"total {validated_block.total}"
            + (f"  ({', '.join(markers)})" if markers else "")
        )
        if validated_block.predecessor_id:
            lines.append(f"    builds on {validated_block.predecessor_id}")
        for error in validated_block.errors:
            lines.append(f"    - {error}")

    scores = calculate_scores(result)
    if scores:
        lines.append("")
        lines.append("Scores:")
        for tray_color, score in scores.items():
            lines.append(f"    {tray_color}: {score}")

    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the scan report.

    Returns:
        int: Process exit status
    """
    parser = argparse.ArgumentParser(description="Validate a scanned dice chain")
    parser.add_argument("observations", help="JSON file with detected dice")
    parser.add_argument(
        "--difficulty", type=int, choices=settings.DIFFICULTY_OPTIONS,
        default=settings.DEFAULT_DIFFICULTY,
        help=f"maximum pip total of a block (default {settings.DEFAULT_DIFFICULTY})",
    )
    parser.add_argument("--json", action="store_true", help="print the result as JSON")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or settings.DEBUG_LOGGING) else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        dice = load_observations(args.observations)
    except (OSError, ValueError) as error:
        logger.error("Cannot read %s: %s", args.observations, error)
        return 1

    result = process_observations(dice, args.difficulty)

    if args.json:
        print(json.dumps(result.as_dict(), indent=2))
    else:
        print(format_report(result))

    return 0


if __name__ == "__main__":
    sys.exit(main())
