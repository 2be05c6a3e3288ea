"""
Identification service payloads.

Builds the tag request for a signature and parses the JSON answer. Sending
the request is left to a caller-supplied transport; ``Identifier`` only
spaces calls through a RateLimiter.
"""
from __future__ import annotations
import base64
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlencode

from spectraprint.fingerprint.signature import Signature
from spectraprint.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SIGNATURE_URI_PREFIX = "data:audio/vnd.shazam.sig;base64,"
TAG_URL = "https://amp.shazam.com/discovery/v5/en/US/android/-/tag/{}/{}"
TAG_QUERY = {
    "sync": "true",
    "webv3": "true",
    "sampling": "true",
    "connected": "",
    "shazamapiversion": "v3",
    "sharehub": "true",
    "video": "v3",
}
DEFAULT_TIMEZONE = "Europe/Berlin"
DEFAULT_GEOLOCATION = {"altitude": 300.0, "latitude": 45.0, "longitude": 2.0}
USER_AGENTS = (
    "Dalvik/2.1.0 (Linux; U; Android 5.0.2; VS980 4G Build/LRX22G)",
    "Dalvik/1.6.0 (Linux; U; Android 4.4.2; SM-T210 Build/KOT49H)",
    "Dalvik/2.1.0 (Linux; U; Android 5.1.1; SM-P905V Build/LMY47X)",
    "Dalvik/2.1.0 (Linux; U; Android 6.0.1; SM-G920F Build/MMB29K)",
    "Dalvik/2.1.0 (Linux; U; Android 5.0; SM-G900F Build/LRX21T)",
    "Dalvik/2.1.0 (Linux; U; Android 6.0.1; SM-G928F Build/MMB29K)",
    "Dalvik/2.1.0 (Linux; U; Android 6.0; LG-H815 Build/MRA58K)",
    "Dalvik/2.1.0 (Linux; U; Android 6.0.1; SM-G930F Build/MMB29K)",
)


@dataclass(frozen=True)
class Match:
    offset: float
    time_skew: float


@dataclass(frozen=True)
class SectionMetadata:
    title: str
    text: str


@dataclass(frozen=True)
class Section:
    section_type: str
    metadata: tuple[SectionMetadata, ...] = ()


@dataclass(frozen=True)
class HubAction:
    name: str
    id: str | None = None


@dataclass(frozen=True)
class Track:
    title: str
    subtitle: str
    sections: tuple[Section, ...] = ()
    actions: tuple[HubAction, ...] = ()

    def metadata(self) -> dict[str, str]:
        """Flatten section metadata into a title -> text mapping."""
        out: dict[str, str] = {}
        for section in self.sections:
            for item in section.metadata:
                out.setdefault(item.title, item.text)
        return out


@dataclass(frozen=True)
class IdentifyResult:
    matches: tuple[Match, ...] = ()
    track: Track | None = None

    @property
    def matched(self) -> bool:
        return bool(self.matches) and self.track is not None


def signature_uri(signature: Signature) -> str:
    """Base64 data URI of the service encoding of a signature."""
    data = base64.b64encode(signature.encode_shazam()).decode("ascii")
    return SIGNATURE_URI_PREFIX + data


def build_identify_request(
    signature: Signature,
    *,
    timestamp_ms: int | None = None,
    timezone: str = DEFAULT_TIMEZONE,
    geolocation: dict | None = None
) -> dict:
    """
    Build the JSON body of a tag request.

    Args:
        signature: Signature to identify (sample rate must be encodable)
        timestamp_ms: Request time in epoch milliseconds (now if None)
        timezone: IANA zone name reported to the service
        geolocation: altitude/latitude/longitude mapping

    Returns:
        JSON-serialisable dict
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return {
        "geolocation": dict(geolocation or DEFAULT_GEOLOCATION),
        "signature": {
            "samplems": int(round(signature.duration_seconds * 1000)),
            "timestamp": int(timestamp_ms),
            "uri": signature_uri(signature),
        },
        "timestamp": int(timestamp_ms),
        "timezone": timezone,
    }


def identify_url(uuid_a: str | None = None, uuid_b: str | None = None) -> str:
    """Tag URL with fresh request ids unless given."""
    a = uuid_a or str(uuid.uuid4()).upper()
    b = uuid_b or str(uuid.uuid4())
    return TAG_URL.format(a, b) + "?" + urlencode(TAG_QUERY)


def request_headers(rng: random.Random | None = None) -> dict[str, str]:
    rng = rng or random.Random()
    return {
        "User-Agent": rng.choice(USER_AGENTS),
        "Content-Language": "en_US",
        "Content-Type": "application/json",
    }


def _require(obj: dict, key: str, kind, where: str):
    if key not in obj:
        raise ValueError(f"Missing '{key}' in {where}.")
    value = obj[key]
    if not isinstance(value, kind):
        raise ValueError(f"'{key}' in {where} has the wrong type.")
    return value


def _parse_match(obj: dict) -> Match:
    if not isinstance(obj, dict):
        raise ValueError("match must be an object.")
    skew = obj.get("timeskew", obj.get("time_skew", 0.0))
    return Match(offset=float(obj.get("offset", 0.0)), time_skew=float(skew))


def _parse_track(obj: dict) -> Track:
    if not isinstance(obj, dict):
        raise ValueError("track must be an object.")
    sections = []
    for sec in obj.get("sections", []) or []:
        items = tuple(
            SectionMetadata(title=str(m.get("title", "")), text=str(m.get("text", "")))
            for m in sec.get("metadata", []) or []
        )
        sections.append(Section(section_type=str(sec.get("type", "")), metadata=items))
    actions = tuple(
        HubAction(name=str(a.get("name", "")), id=a.get("id"))
        for a in (obj.get("hub") or {}).get("actions", []) or []
    )
    return Track(
        title=str(_require(obj, "title", str, "track")),
        subtitle=str(obj.get("subtitle", "")),
        sections=tuple(sections),
        actions=actions,
    )


def parse_identify_response(obj: dict) -> IdentifyResult:
    """
    Parse a decoded tag response.

    Raises:
        ValueError: the response has no ``matches`` list or a malformed track
    """
    if not isinstance(obj, dict):
        raise ValueError("Identify response must be a JSON object.")
    raw_matches = _require(obj, "matches", list, "response")
    matches = tuple(_parse_match(m) for m in raw_matches)
    track = obj.get("track")
    return IdentifyResult(
        matches=matches,
        track=_parse_track(track) if track is not None else None,
    )


Transport = Callable[[str, dict, dict], Any]


@dataclass
class Identifier:
    """
    Send signatures through a transport, at most one request per interval.

    ``transport(url, headers, body)`` performs the HTTP POST and returns the
    decoded JSON response.
    """
    transport: Transport
    limiter: RateLimiter = field(default_factory=lambda: RateLimiter(1.0))
    timezone: str = DEFAULT_TIMEZONE

    def identify(self, signature: Signature) -> IdentifyResult:
        body = build_identify_request(signature, timezone=self.timezone)
        url = identify_url()
        self.limiter.acquire()
        logger.debug("Identifying %.2fs signature (%d peaks)",
                     signature.duration_seconds, signature.peak_count)
        return parse_identify_response(self.transport(url, request_headers(), body))
