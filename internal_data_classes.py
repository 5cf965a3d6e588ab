"""Dice Chain Data Classes Module

This module defines the core data structures used in the dice chain validation system.
It contains dataclasses that represent observed dice, the trays (blocks) they are
grouped into, and the outcome of validating those blocks against the chain rules.

All records are frozen. Validation never changes a Block, it wraps it in a
ValidatedBlock instead.

Dependencies:
    - dataclasses: For the @dataclass decorator
    - typing: For type annotations
    - numpy: For centroid calculation

Author: Dice Chain Validation contributors
"""

import numbers
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

import numpy as np

import settings


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in image-pixel coordinates.

    Attributes:
        x: Left edge of the rectangle
        y: Top edge of the rectangle
        width: Width in pixels
        height: Height in pixels
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError("Rect dimensions must not be negative")

    @property
    def center(self) -> Tuple[float, float]:
        """Return center coordinates (x, y)."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, x: float, y: float) -> bool:
        """Check if a point lies inside the rectangle, edges included."""
        return (
            self.x <= x <= self.x + self.width
            and self.y <= y <= self.y + self.height
        )


@dataclass(frozen=True)
class DieObservation:
    """Represents a single die reported by the detector.

    Attributes:
        color: One of settings.DICE_COLORS
        pips: Number of pips on the top face (1-6)
        confidence: Color detection confidence in [0, 1]
        bounds: Bounding box of the die in the image
    """

    color: str
    pips: int
    confidence: float
    bounds: Rect

    def __post_init__(self):
        if self.color not in settings.DICE_COLORS:
            raise ValueError(f"Unknown die color: {self.color!r}")
        if isinstance(self.pips, bool) or not isinstance(self.pips, numbers.Integral):
            raise ValueError(f"Pips must be an integer, got {self.pips!r}")
        # Detectors built on numpy report numpy integers
        object.__setattr__(self, "pips", int(self.pips))
        if not 1 <= self.pips <= 6:
            raise ValueError(f"Pips must be between 1 and 6, got {self.pips}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Confidence must be between 0 and 1, got {self.confidence}")

    @property
    def center(self) -> Tuple[float, float]:
        return self.bounds.center

    @classmethod
    def from_dict(cls, data: dict) -> "DieObservation":
        """Create a DieObservation from a plain dictionary.

        This factory method converts detector output (for example parsed JSON) into
        our DieObservation dataclass.

        Args:
            data: Mapping with color, pips, confidence and bounds {x, y, width, height}

        Returns:
            A new DieObservation instance with data from the mapping
        """
        bounds = data["bounds"]
        return cls(
            color=data["color"],
            pips=data["pips"],
            confidence=float(data.get("confidence", 1.0)),
            bounds=Rect(
                x=float(bounds["x"]),
                y=float(bounds["y"]),
                width=float(bounds["width"]),
                height=float(bounds["height"]),
            ),
        )

    def as_dict(self) -> dict:
        return {
            "color": self.color,
            "pips": self.pips,
            "confidence": self.confidence,
            "bounds": {
                "x": self.bounds.x,
                "y": self.bounds.y,
                "width": self.bounds.width,
                "height": self.bounds.height,
            },
        }


@dataclass(frozen=True)
class Block:
    """Represents one tray of dice (a block of the chain).

    A block is a cluster of nearby dice, nominally 9 in a 3x3 tray.
    Its total and position are derived from the dice, so a corrected
    copy of the block (see dataclasses.replace) is always consistent.

    Attributes:
        id: Unique block identifier ("block-0", "block-1", ...)
        dice: Dice observations that make up this tray
        tray_color: Display tag for the tray, not used by validation
        column: Generation index, 0 for genesis
    """

    id: str
    dice: Tuple[DieObservation, ...]
    tray_color: str = settings.DEFAULT_TRAY_COLOR
    column: int = 0  # Set by the column assigner

    def __post_init__(self):
        # Accept any sequence of dice but store it as a tuple
        object.__setattr__(self, "dice", tuple(self.dice))

    @property
    def total(self) -> int:
        """Get the total of the block (sum of all pips).

        Returns:
            The sum of pip values over all dice
        """
        return sum(die.pips for die in self.dice)

    @property
    def position(self) -> Tuple[float, float]:
        """Get the centroid (x, y) of the dice centers."""
        if not self.dice:
            return (0.0, 0.0)
        centroid = np.mean([die.center for die in self.dice], axis=0)
        return (float(centroid[0]), float(centroid[1]))

    @property
    def colors(self) -> List[str]:
        return [die.color for die in self.dice]

    def with_column(self, column: int) -> "Block":
        return replace(self, column=column)


@dataclass(frozen=True)
class ValidatedBlock:
    """A block together with the outcome of chain validation.

    Attributes:
        block: The validated block, unchanged
        is_genesis: Whether the dice colors match the genesis pattern
        predecessor_id: Id of the block this one builds on, if any
        is_valid: Whether the block passed all fatal checks
        errors: Human readable diagnostics, in the order they were found
        required_colors: Colors required of a successor, one per die
    """

    block: Block
    is_genesis: bool
    predecessor_id: Optional[str]
    is_valid: bool
    errors: Tuple[str, ...]
    required_colors: Tuple[str, ...]

    @property
    def id(self) -> str:
        return self.block.id

    @property
    def dice(self) -> Tuple[DieObservation, ...]:
        return self.block.dice

    @property
    def column(self) -> int:
        return self.block.column

    @property
    def total(self) -> int:
        return self.block.total

    @property
    def position(self) -> Tuple[float, float]:
        return self.block.position

    @property
    def tray_color(self) -> str:
        return self.block.tray_color

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "dice": [die.as_dict() for die in self.dice],
            "total": self.total,
            "tray_color": self.tray_color,
            "position": {"x": self.position[0], "y": self.position[1]},
            "column": self.column,
            "is_genesis": self.is_genesis,
            "predecessor_id": self.predecessor_id,
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "required_colors": list(self.required_colors),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Summary of one scan: every validated block plus the longest chain.

    Attributes:
        blocks: All validated blocks, valid and invalid, in validation order
        longest_chain: Block ids from genesis to the deepest valid leaf
        total_blocks: Number of blocks
        valid_blocks: Number of valid blocks
        invalid_blocks: Number of invalid blocks
        difficulty: Difficulty threshold the blocks were checked against
    """

    blocks: Tuple[ValidatedBlock, ...]
    longest_chain: Tuple[str, ...]
    total_blocks: int
    valid_blocks: int
    invalid_blocks: int
    difficulty: int

    def get_block(self, block_id: str) -> Optional[ValidatedBlock]:
        for validated_block in self.blocks:
            if validated_block.id == block_id:
                return validated_block
        return None

    def as_dict(self) -> dict:
        return {
            "blocks": [validated_block.as_dict() for validated_block in self.blocks],
            "longest_chain": list(self.longest_chain),
            "total_blocks": self.total_blocks,
            "valid_blocks": self.valid_blocks,
            "invalid_blocks": self.invalid_blocks,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class RuleSet:
    """Chain rule data: the value->color table and the genesis pattern.

    The defaults come from settings.py. Tests and alternate games can pass
    their own rule set to the grouping and validation functions.

    Attributes:
        value_to_color: Pip value (1-6) -> color required of the successor
        genesis_pattern: Colors of the genesis tray (order does not matter)
    """

    value_to_color: Dict[int, str] = field(
        default_factory=lambda: dict(settings.VALUE_TO_COLOR))
    genesis_pattern: Tuple[str, ...] = settings.GENESIS_PATTERN

    def __post_init__(self):
        object.__setattr__(self, "value_to_color", dict(self.value_to_color))
        object.__setattr__(self, "genesis_pattern", tuple(self.genesis_pattern))

        if sorted(self.value_to_color) != [1, 2, 3, 4, 5, 6]:
            raise ValueError("Color table must map exactly the values 1 to 6")
        if len(set(self.value_to_color.values())) != 6:
            raise ValueError("Color table must map each value to a distinct color")
        for color in self.value_to_color.values():
            if color not in settings.DICE_COLORS:
                raise ValueError(f"Unknown die color in color table: {color!r}")
        for color in self.genesis_pattern:
            if color not in settings.DICE_COLORS:
                raise ValueError(f"Unknown die color in genesis pattern: {color!r}")

    @property
    def color_to_value(self) -> Dict[str, int]:
        return {color: value for value, color in self.value_to_color.items()}

    @property
    def genesis_total(self) -> int:
        """Pip total of a genesis block whose values match its colors (24 by default)."""
        color_to_value = self.color_to_value
        return sum(color_to_value[color] for color in self.genesis_pattern)


DEFAULT_RULES = RuleSet()
