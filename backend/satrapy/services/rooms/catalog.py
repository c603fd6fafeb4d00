"""Static game data: factions, starting economy and resource nodes."""

from typing import Dict, List

CIVIL_FACTIONS = ('elam', 'caspian', 'kassite')
TRIBE_FACTIONS = ('pars', 'parthia', 'media')
FACTIONS = CIVIL_FACTIONS + TRIBE_FACTIONS

STARTING_RESOURCES = {
    'armor': 2,
    'sword': 3,
    'bow': 2,
    'arrow': 10,
    'silver': 2,
    'stone': 10,
    'iron': 3,
    'gold': 1,
    'wood': 15,
    'wheat': 20,
    'meat': 10,
    'rice': 5,
    'cloth': 2,
    'sheep': 5,
    'cattle': 2,
}

# Unit kind accepted by `upgrade` -> economy record attribute
UPGRADABLE_UNITS = {
    'soldier': 'soldiers',
    'cavalry': 'cavalry',
    'archer': 'archers',
}

# (id, type, distance, rate, resource credited on gather)
_NODE_TABLE = [
    ('node1', 'stone_mine', 120, 5, 'stone'),
    ('node2', 'iron_mine', 200, 4, 'iron'),
    ('node3', 'forest', 300, 6, 'wood'),
    ('node4', 'farm', 260, 7, 'wheat'),
    ('node5', 'gold_mine', 180, 2, 'gold'),
]

# March travel: players sit a fixed 200 distance units apart at 100 ms/unit
MARCH_DISTANCE = 200
MARCH_MS_PER_UNIT = 100
MIN_TRAVEL_MS = 2000
GATHER_MS_PER_UNIT = 80


def is_civil(faction):
    return faction in CIVIL_FACTIONS


def is_tribe(faction):
    return faction in TRIBE_FACTIONS


def empty_rosters() -> Dict[str, List[str]]:
    return {faction: [] for faction in FACTIONS}


def node_rows():
    return list(_NODE_TABLE)
