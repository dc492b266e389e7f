import os

from dotenv import load_dotenv

load_dotenv()


# -------------------------------------------------
# ENV HELPERS
# -------------------------------------------------
def get_required_env(name: str) -> str:
    value = os.getenv(name)
    if not value or not value.strip():
        raise RuntimeError(f"❌ Missing required env var: {name}")
    return value


def get_optional_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return value.strip()


# -------------------------------------------------
# DATABASE (SUPABASE POSTGRES)
# -------------------------------------------------
DATABASE_URL = get_required_env("DATABASE_URL")
DB_SSLMODE = get_optional_env("DB_SSLMODE", "require")

# -------------------------------------------------
# PLATFORM WALLETS
# -------------------------------------------------
ADMIN_WALLET_ADDRESS = get_optional_env(
    "ADMIN_WALLET_ADDRESS",
    "0x311479200d45ef0243b92dbcf9849b8f6b931d27ae885197ea73066724f2bcf4",
)
ROYALTIES_WALLET_ADDRESS = get_optional_env("ROYALTIES_WALLET_ADDRESS", ADMIN_WALLET_ADDRESS)
RAFFLE_TREASURY_ADDRESS = get_optional_env("RAFFLE_TREASURY_ADDRESS", ADMIN_WALLET_ADDRESS)
PLATFORM_WALLET_ADDRESS = get_optional_env("PLATFORM_WALLET_ADDRESS", ADMIN_WALLET_ADDRESS)

# -------------------------------------------------
# UPSTREAM SERVICES
# -------------------------------------------------
SUI_RPC_URL = get_optional_env("SUI_RPC_URL", "https://fullnode.testnet.sui.io:443")
COINGECKO_PRICE_URL = get_optional_env(
    "COINGECKO_PRICE_URL",
    "https://api.coingecko.com/api/v3/simple/price?ids=sui&vs_currencies=usd",
)

# -------------------------------------------------
# SECRETS
# -------------------------------------------------
# Salt the web client appends to the wallet address when encrypting usernames
ENCRYPTION_SALT = get_optional_env("ENCRYPTION_SALT", "your-app-secret-salt")
CRON_SECRET = os.getenv("CRON_SECRET")


def is_admin(address) -> bool:
    if not address:
        return False
    return str(address).lower() == ADMIN_WALLET_ADDRESS.lower()
