"""
ABI fragments of the NumberPredictionGame contract used by the client.
"""

GAME_PLAYED_EVENT = {
    "anonymous": False,
    "name": "GamePlayed",
    "type": "event",
    "inputs": [
        {"indexed": True, "name": "gameId", "type": "uint256"},
        {"indexed": True, "name": "player", "type": "address"},
        {"indexed": False, "name": "betAmount", "type": "uint256"},
        {"indexed": False, "name": "predictedNumber", "type": "uint8"},
        {"indexed": False, "name": "resultNumber", "type": "uint8"},
        {"indexed": False, "name": "won", "type": "bool"},
        {"indexed": False, "name": "payout", "type": "uint256"},
    ],
}

GAME_STRUCT_COMPONENTS = [
    {"name": "gameId", "type": "uint256"},
    {"name": "player", "type": "address"},
    {"name": "betAmount", "type": "uint256"},
    {"name": "predictedNumber", "type": "uint8"},
    {"name": "resultNumber", "type": "uint8"},
    {"name": "won", "type": "bool"},
    {"name": "payout", "type": "uint256"},
    {"name": "timestamp", "type": "uint256"},
]

GAME_CONTRACT_ABI = [
    {
        "name": "play",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [{"name": "_predictedNumber", "type": "uint8"}],
        "outputs": [],
    },
    {
        "name": "getGame",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_gameId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "tuple", "components": GAME_STRUCT_COMPONENTS}],
    },
    {
        "name": "getPlayerGames",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_player", "type": "address"},
            {"name": "_limit", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
    GAME_PLAYED_EVENT,
]

GAME_FIELDS = [component["name"] for component in GAME_STRUCT_COMPONENTS]
