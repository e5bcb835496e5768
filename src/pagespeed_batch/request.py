"""Request parameters and URL construction for the runPagespeed endpoint."""

from dataclasses import dataclass
from urllib.parse import urlencode

from .credentials import Credential
from .errors import CredentialError

DEFAULT_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"


@dataclass(frozen=True)
class LighthouseParam:
    """A single request parameter as a key/value pair."""

    key: str
    value: str


def category(value: str) -> LighthouseParam:
    return LighthouseParam("category", value)


def locale(value: str) -> LighthouseParam:
    return LighthouseParam("locale", value)


def strategy(value: str) -> LighthouseParam:
    return LighthouseParam("strategy", value)


def utm_campaign(value: str) -> LighthouseParam:
    return LighthouseParam("utm_campaign", value)


def utm_source(value: str) -> LighthouseParam:
    return LighthouseParam("utm_source", value)


def captcha_token(value: str) -> LighthouseParam:
    return LighthouseParam("captchaToken", value)


# Possible values for the category parameter
CATEGORY_ACCESSIBILITY = category("ACCESSIBILITY")
CATEGORY_BEST_PRACTICES = category("BEST_PRACTICES")
CATEGORY_PERFORMANCE = category("PERFORMANCE")
CATEGORY_SEO = category("SEO")

CATEGORY_ALL = (
    CATEGORY_ACCESSIBILITY,
    CATEGORY_BEST_PRACTICES,
    CATEGORY_PERFORMANCE,
    CATEGORY_SEO,
)

# Possible values for the strategy parameter
STRATEGY_DESKTOP = strategy("desktop")
STRATEGY_MOBILE = strategy("mobile")


def create_lighthouse_url(
    url: str,
    credential: Credential | None,
    *params: LighthouseParam,
    endpoint: str = DEFAULT_ENDPOINT,
) -> str:
    """
    Return the complete request URL for analysing ``url``.

    The query holds ``url``, the credential's token as ``key`` (only when a
    credential is given) and every param. Keys are sorted; repeated keys keep
    their relative order.

    Raises:
        CredentialError: If the credential fails to produce a token
    """
    query: list[tuple[str, str]] = [("url", url)]

    if credential is not None:
        try:
            key = credential.token()
        except CredentialError as e:
            e.url = e.url or url
            raise
        except Exception as e:
            raise CredentialError(f"token error: {e}", url=url) from e
        query.append(("key", key))

    query.extend((p.key, p.value) for p in params)
    query.sort(key=lambda pair: pair[0])

    return f"{endpoint}?{urlencode(query)}"
