import os
from dotenv import load_dotenv

load_dotenv()


def get_int_env(name: str, fallback: int) -> int:
    value = os.getenv(name)
    if not value:
        return fallback
    try:
        return int(value)
    except ValueError:
        return fallback


user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT")
db_name = os.getenv("DB_NAME")

solana_rpc_url = os.getenv("SOLANA_RPC_URL", "https://api.devnet.solana.com")
weave_program_id = os.getenv("WEAVE_PROGRAM_ID", "6AyQbmH2bSeip2vZWR82NpJ637SQRtrAU4bt2j2yVPwN")
weave_mint = os.getenv("WEAVE_MINT", "S3Eqjw8eFu2w11KDKQ7SWuynmvBpjHH4cNeMgXFRvsQ")

# Secret key of the settlement authority, read once at start-up.
game_authority_key = os.getenv("GAME_AUTHORITY_KEY")

ledger_timeout_seconds = get_int_env("LEDGER_TIMEOUT_SECONDS", 10)
rpc_timeout_seconds = get_int_env("RPC_TIMEOUT_SECONDS", 10)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()

if __name__ == "__main__":
    print(user, host, port, db_name, solana_rpc_url, weave_program_id, weave_mint)
