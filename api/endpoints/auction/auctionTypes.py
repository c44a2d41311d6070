# endpoints/auction/auctionTypes.py

STATUS_PENDING = "pending"
STATUS_CURRENT = "current"
STATUS_SOLD = "sold"
STATUS_UNSOLD = "unsold"

PLAYER_STATUSES = (STATUS_PENDING, STATUS_CURRENT, STATUS_SOLD, STATUS_UNSOLD)

LOG_SETUP = "setup"
LOG_SELECT_ROUND = "select_round"
LOG_START = "start"
LOG_BID = "bid"
LOG_NEXT = "next"
LOG_PAUSE = "pause"
LOG_RESUME = "resume"
LOG_UNSOLD = "unsold"
LOG_SALE = "sale"
LOG_STOP = "stop"
LOG_END_ROUND = "end_round"
LOG_ROUND_COMPLETE = "round_complete"

ACQUIRED_VIA_AUCTION = "auction"

CONTROL_SELECT_ROUND = "select_round"
CONTROL_START = "start"
CONTROL_NEXT = "next"
CONTROL_PAUSE = "pause"
CONTROL_RESUME = "resume"
CONTROL_SKIP = "skip"
CONTROL_SELL = "sell"
CONTROL_TIMER_EXPIRED = "timer_expired"
CONTROL_STOP = "stop"
CONTROL_END_ROUND = "end_round"

CONTROL_ACTIONS = (
    CONTROL_SELECT_ROUND,
    CONTROL_START,
    CONTROL_NEXT,
    CONTROL_PAUSE,
    CONTROL_RESUME,
    CONTROL_SKIP,
    CONTROL_SELL,
    CONTROL_TIMER_EXPIRED,
    CONTROL_STOP,
    CONTROL_END_ROUND,
)

# Front ends send either the snake_case or the camelCase spelling.
CONTROL_ALIASES = {
    "selectRound": CONTROL_SELECT_ROUND,
    "timerExpired": CONTROL_TIMER_EXPIRED,
    "endRound": CONTROL_END_ROUND,
}


def normalize_control_action(action: str) -> str:
    action = (action or "").strip()
    return CONTROL_ALIASES.get(action, action)


def format_amount(amount) -> str:
    if not amount:
        return "$0"
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.0f}K"
    return f"${amount:,}"
