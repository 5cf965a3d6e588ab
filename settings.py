"""Settings for dice-chain scan validation.

This file contains the static rule data and tuning constants used by the
block grouping and chain validation modules. The settings are described below.

Author: Dice Chain Validation contributors
"""

# Flag for enabling debug logging in the scan report
DEBUG_LOGGING = False

# The six dice colors used in the game
DICE_COLORS = ("red", "orange", "yellow", "green", "blue", "purple")

# Pip value -> color required of the next block's dice
VALUE_TO_COLOR = {
    1: "red",
    2: "orange",
    3: "yellow",
    4: "green",
    5: "blue",
    6: "purple",
}

# Fixed genesis tray: 2 red, 2 orange, 2 yellow, 3 green (values 1,1,2,2,3,3,4,4,4)
GENESIS_PATTERN = (
    "red", "red",
    "orange", "orange",
    "yellow", "yellow",
    "green", "green", "green",
)

# Detections overlapping more than this are treated as the same die
DUPLICATE_OVERLAP_THRESHOLD = 0.5

# Dice closer than this many average die sizes belong to the same tray
CLUSTER_DISTANCE_FACTOR = 2.5

# A tray holds 9 dice, 1-2 missed or spurious detections are tolerated
MIN_BLOCK_DICE = 7
MAX_BLOCK_DICE = 11

# Trays are 3x3 grids, one column is estimated as 1.5 tray widths
TRAY_GRID_SIZE = 3
COLUMN_WIDTH_FACTOR = 1.5

# Tray color is not detected from pixels, blocks get a neutral tag
DEFAULT_TRAY_COLOR = "#888888"

# Maximum pip total of a non-genesis block
DEFAULT_DIFFICULTY = 25
DIFFICULTY_OPTIONS = (20, 25, 30, 35)
