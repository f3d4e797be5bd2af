"""Global settings and configurations"""
import os
from threading import Lock, Event

from dotenv import load_dotenv

# Pick up a local .env before any value below is read
load_dotenv()


def _env_list(name: str, default: list) -> list:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(name, "")
    values = [item.strip() for item in raw.split(",") if item.strip()]
    return values or list(default)


# Global state flags and locks
print_lock = Lock()
shutdown_flag = Event()

# Unique runtime errors collected during a run, keyed by the endpoint or
# stage that produced them (see utils.base_helpers)
RUNTIME_ERRORS = {}

# Data directory - defaults to current directory, can be set via DATA_DIR env var
DATA_DIR = os.getenv("DATA_DIR", ".")

# Cosmos Hub REST (LCD) endpoints used in rotation for load balancing
DEFAULT_HUB_ENDPOINTS = [
    "https://lcd-cosmoshub.keplr.app",
    "https://cosmos-rest.publicnode.com",
    "https://rest-cosmoshub.ecostake.com",
]

HUB_CONFIG = {
    "endpoints": _env_list("HUB_ENDPOINTS", DEFAULT_HUB_ENDPOINTS),
    "routes": {
        "balances": "/cosmos/bank/v1beta1/balances/{address}",
        "delegations": "/cosmos/staking/v1beta1/delegations/{address}",
    },
    "denom": os.getenv("HUB_DENOM", "uatom"),
    "display_denom": "ATOM",
    "scale_factor": 1_000_000,  # uatom -> ATOM
    "request_timeout": float(os.getenv("HUB_REQUEST_TIMEOUT", "10")),
    # 3 endpoints * 3 addresses per endpoint
    "batch_size": int(os.getenv("HUB_BATCH_SIZE", "9")),
    "batch_delay": float(os.getenv("HUB_BATCH_DELAY", "1.0")),
    "user_agent": "HubOverlapPipeline/1.0",
}

# Bech32 prefixes for address conversion
ADDRESS_PREFIXES = {
    "source": "stars",
    "counterpart": "cosmos",
}

# CSV column titles shared by the converter, the pipeline and the report
CSV_COLUMNS = {
    "source": "StargazeAddress",
    "counterpart": "CosmosAddress",
    "balance": "Balance",
    "staking": "IsStaking",
}

# File names, resolved against DATA_DIR
DATA_FILES = {
    "wallets": "wallets.csv",
    "pairs": "output.csv",
    "enriched": "hub.csv",
}

REPORT_SETTINGS = {
    "dust_threshold": 0.1,  # ATOM; balances at or below this are dust
    "majority_threshold": 50.0,
}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_data_path(relative_path: str) -> str:
    """Get the full path for a data file, relative to DATA_DIR."""
    return os.path.join(DATA_DIR, relative_path)
