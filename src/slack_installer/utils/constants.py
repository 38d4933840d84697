"""Centralized constants for the Slack installer."""

# Authorization endpoints
AUTHORIZE_URL_V2 = "https://slack.com/oauth/v2/authorize"
AUTHORIZE_URL_V1 = "https://slack.com/oauth/authorize"

# Web API
DEFAULT_API_BASE_URL = "https://slack.com/api/"
METHOD_OAUTH_V1_ACCESS = "oauth.access"
METHOD_OAUTH_V2_ACCESS = "oauth.v2.access"
METHOD_AUTH_TEST = "auth.test"
DEFAULT_HTTP_TIMEOUT = 10.0

# State parameter
DEFAULT_STATE_TTL_SECONDS = 600
STATE_SIGNING_ALGORITHM = "HS256"

# Token rotation: refresh anything expired or expiring within 2 hours
TOKEN_EXPIRY_WINDOW_SECONDS = 7200

# Callback query parameters
ACCESS_DENIED = "access_denied"

# HTTP adapter routes
INSTALL_PATH = "/slack/install"
REDIRECT_PATH = "/slack/oauth_redirect"
