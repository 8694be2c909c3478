import pathlib

from helpers.types.common import URL

# Store (LeanCloud REST api)
STORE_CLASSES_URL = URL("/1.1/classes")
# Largest page the store hands out in one query
STORE_MAX_PAGE_SIZE = 1000

# Store console, only used by the retention sweep
DEFAULT_CONSOLE_URL = URL("https://us-w1-console-api.leancloud.app")
CONSOLE_LOGIN_URL = URL("/1.1/signin")
CONSOLE_XSRF_URL = URL("/1.1/xsrf-token")
CONSOLE_DATA_URL = URL("/1.1/data")
XSRF_HEADER = "x-xsrf-token"

# Exchange
DEFAULT_EXCHANGE_URL = URL("https://api.binance.com")
DEPTH_URL = URL("/api/v3/depth")
DEFAULT_DEPTH_LIMIT = 5000
DEFAULT_SOURCE = "binance"

# Github, for publishing exports
DEFAULT_GITHUB_URL = URL("https://api.github.com")
REPOS_URL = URL("/repos")

# ENV VARS
STORE_ID_ENV_VAR = "LEANCLOUD_ID"
STORE_KEY_ENV_VAR = "LEANCLOUD_KEY"
STORE_URL_ENV_VAR = "LEANCLOUD_URL"
CONSOLE_URL_ENV_VAR = "LEANCLOUD_CONSOLE_URL"
CONSOLE_EMAIL_ENV_VAR = "LEANCLOUD_EMAIL"
CONSOLE_PASSWORD_ENV_VAR = "LEANCLOUD_PASSWORD"
EXCHANGE_URL_ENV_VAR = "EXCHANGE_URL"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"
STORE_ENV_VARS = [STORE_ID_ENV_VAR, STORE_KEY_ENV_VAR, STORE_URL_ENV_VAR]
CONSOLE_ENV_VARS = [STORE_ID_ENV_VAR, CONSOLE_EMAIL_ENV_VAR, CONSOLE_PASSWORD_ENV_VAR]

# Retries for transient store / exchange failures
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETENTION_DAYS = 2

# DATA
# Note: data stored under this path does not save to GitHub
LOCAL_STORAGE_FOLDER = pathlib.Path(__file__).parent.parent.parent / pathlib.Path(
    "local/"
)
DEFAULT_EXPORT_FOLDER = LOCAL_STORAGE_FOLDER / "exports"
