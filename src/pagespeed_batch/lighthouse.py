"""Lighthouse result model and response decoding.

API Reference: https://developers.google.com/speed/docs/insights/rest/v5/pagespeedapi/runpagespeed
"""

from datetime import datetime, timedelta
from urllib.parse import ParseResult, urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .base import DecodedResponse
from .errors import CompositeError, DecodeError, GoogleErrorRecord, RunWarning

CATEGORY_NAMES = ("performance", "accessibility", "best-practices", "seo")


class _LighthouseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Audit(_LighthouseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    score: float | None = None
    score_display_mode: str = Field(default="", alias="scoreDisplayMode")


class AuditRef(_LighthouseModel):
    id: str = ""
    weight: float = 0.0
    group: str = ""


class Category(_LighthouseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    score: float | None = None
    manual_description: str = Field(default="", alias="manualDescription")
    audit_refs: list[AuditRef] = Field(default_factory=list, alias="auditRefs")


class CategoryGroup(_LighthouseModel):
    title: str = ""
    description: str = ""


class _Timing(_LighthouseModel):
    total: float = 0.0


class _RuntimeErrorBody(_LighthouseModel):
    code: int | str = 0
    message: str = ""


class _LighthouseResultBody(_LighthouseModel):
    requested_url: str = Field(default="", alias="requestedUrl")
    final_url: str = Field(default="", alias="finalUrl")
    fetch_time: str = Field(default="", alias="fetchTime")
    run_warnings: list[str] = Field(default_factory=list, alias="runWarnings")
    audits: dict[str, Audit] = Field(default_factory=dict)
    categories: dict[str, Category] = Field(default_factory=dict)
    category_groups: dict[str, CategoryGroup] = Field(default_factory=dict, alias="categoryGroups")
    runtime_error: _RuntimeErrorBody | None = Field(default=None, alias="runtimeError")
    timing: _Timing = Field(default_factory=_Timing)


class _ResponseBody(_LighthouseModel):
    lighthouse_result: _LighthouseResultBody | None = Field(default=None, alias="lighthouseResult")


def _parse_fetch_time(value: str) -> datetime:
    # fromisoformat() only accepts a trailing "Z" from Python 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


class LighthouseResult:
    """Decoded lighthouseResult of a successful runPagespeed call."""

    def __init__(
        self,
        requested_url: ParseResult,
        final_url: ParseResult,
        fetch_time: datetime,
        run_warnings: list[RunWarning] | None = None,
        audits: dict[str, Audit] | None = None,
        categories: dict[str, Category] | None = None,
        category_groups: dict[str, CategoryGroup] | None = None,
        timing: timedelta = timedelta(0),
    ):
        self._requested_url = requested_url
        self._final_url = final_url
        self._fetch_time = fetch_time
        self._run_warnings = list(run_warnings or [])
        self._audits = dict(audits or {})
        self._categories = dict(categories or {})
        self._category_groups = dict(category_groups or {})
        self._timing = timing

    @property
    def requested_url(self) -> ParseResult:
        """The original requested url."""
        return self._requested_url

    @property
    def final_url(self) -> ParseResult:
        """The final resolved url that was audited."""
        return self._final_url

    @property
    def fetch_time(self) -> datetime:
        """The time that this run was fetched."""
        return self._fetch_time

    @property
    def run_warnings(self) -> list[RunWarning]:
        """Warnings (non-fatal errors) coming from the PageSpeed API."""
        return list(self._run_warnings)

    @property
    def timing(self) -> timedelta:
        """The total duration of Lighthouse's run."""
        return self._timing

    def audit(self, name: str) -> Audit | None:
        return self._audits.get(name)

    def audits(self) -> list[str]:
        return list(self._audits)

    def category(self, name: str) -> Category | None:
        return self._categories.get(name)

    def categories(self) -> list[str]:
        return list(self._categories)

    def category_group(self, name: str) -> CategoryGroup | None:
        return self._category_groups.get(name)

    def category_groups(self) -> list[str]:
        return list(self._category_groups)

    def score(self, category: str) -> int:
        """
        Return the score of a category in the 0-100 range, rounded to the
        nearest point.

        "average" returns the average of the available category scores and
        "total" their sum. Returns 0 if the result has no categories and -1 for
        a missing or unknown category.
        """
        if not self._categories:
            return 0

        if category in CATEGORY_NAMES:
            c = self.category(category)
            if c is None:
                return -1
            return round((c.score or 0.0) * 100)

        if category in ("average", "total"):
            s = sum(c.score or 0.0 for c in self._categories.values())
            if category == "average":
                return round(s * 100) // len(self._categories)
            return round(s * 100)

        return -1

    def __repr__(self) -> str:
        return (
            f"LighthouseResult(final_url={self._final_url.geturl()!r}, "
            f"categories={self.categories()!r})"
        )


def _runtime_error(body: _RuntimeErrorBody, url: str, raw: str) -> CompositeError:
    if isinstance(body.code, int):
        return CompositeError(body.code, body.message, url=url, raw=raw)

    # Lighthouse reports its own string codes (eg.: "NO_FCP")
    record = GoogleErrorRecord(domain="lighthouse", reason=body.code, message=body.message)
    return CompositeError(0, body.message, [record], url=url, raw=raw)


class LighthouseDecoder:
    """Decode a successful runPagespeed response body."""

    def decode(self, body: bytes | str, *, url: str = "") -> DecodedResponse[LighthouseResult]:
        """
        Decode ``body`` into a LighthouseResult.

        A runtimeError inside the result is returned as a CompositeError with
        no payload. Run warnings are returned in both cases.

        Raises:
            DecodeError: If the body is malformed
        """
        raw = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body

        try:
            response = _ResponseBody.model_validate_json(raw)
        except ValidationError as e:
            raise DecodeError(f"unmarshal error: {e}", url=url) from e

        result = response.lighthouse_result
        if result is None:
            raise DecodeError("response has no lighthouseResult", url=url)

        warnings = [RunWarning(w, url=url) for w in result.run_warnings]

        if result.runtime_error is not None:
            return DecodedResponse(
                runtime_error=_runtime_error(result.runtime_error, url, raw),
                warnings=warnings,
            )

        try:
            fetch_time = _parse_fetch_time(result.fetch_time)
        except ValueError as e:
            raise DecodeError(f"invalid fetchTime: {e}", url=url) from e

        try:
            requested_url = urlparse(result.requested_url)
            final_url = urlparse(result.final_url)
        except ValueError as e:
            raise DecodeError(f"invalid url: {e}", url=url) from e

        payload = LighthouseResult(
            requested_url=requested_url,
            final_url=final_url,
            fetch_time=fetch_time,
            run_warnings=warnings,
            audits=result.audits,
            categories=result.categories,
            category_groups=result.category_groups,
            timing=timedelta(milliseconds=result.timing.total),
        )
        return DecodedResponse(payload=payload, warnings=warnings)
