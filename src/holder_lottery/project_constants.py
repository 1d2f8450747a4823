"""
Project-wide parameters for the holder lottery.

These values define the public rules of the draw.
Changing them changes eligibility or cadence and MUST be publicly announced.
"""

# Token whose holders enter the draw (MAINNET)
TOKEN_MINT = "DpJAoi4aCyzePWvvgrxQFRdLgHZQGf7SfUSo4wLUgeci"

# Public exclusion list (pool vaults, team wallets)
EXCLUDED_WALLETS_FILE = "excluded_wallets.mainnet.txt"

# One ticket per 10,000 whole tokens held
TICKET_DIVISOR = 10_000

# Draws happen at these minute offsets of every hour (UTC)
DRAW_MINUTES = (0, 45)

# How long a finished draw stays on display before the next cycle
ANNOUNCE_SECONDS = 30

# The external trigger fires once per minute
TICK_SECONDS = 60

# Holders included in status payloads
STATUS_HOLDER_LIMIT = 25

# Randomness: attempts and per-attempt wait for fulfillment
RANDOMNESS_ATTEMPTS = 3
RANDOMNESS_TIMEOUT_S = 60.0

# Swap aggregator
SWAP_ATTEMPTS = 3
JUPITER_API_URL = "https://lite-api.jup.ag/ultra/v1"
QUOTE_MINT = "So11111111111111111111111111111111111111112"  # wrapped SOL
PRIZE_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"  # BONK
QUOTE_DECIMALS = 9  # lamports per SOL
JUPITER_PRICE_URL = "https://lite-api.jup.ag/price/v3"

# Unclaimed-fee estimate refresh period while waiting
FEE_REFRESH_SECONDS = 10

# Where each draw's audit JSON is written
AUDIT_DIR = "draws"
