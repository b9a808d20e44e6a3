import ipaddress
import logging
import time
from typing import Dict, Optional, Tuple

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)

IP_API_URL = "http://ip-api.com/json/{ip}?fields=status,country,countryCode"
CACHE_TTL_SECONDS = 24 * 60 * 60
MAX_CACHE_ENTRIES = 10000

# ip -> (expires_at, country)
_country_cache: Dict[str, Tuple[float, Optional[str]]] = {}


def _strip_mapped_prefix(ip: str) -> str:
    ip = ip.strip()
    if ip.startswith("::ffff:"):
        return ip[len("::ffff:"):]
    return ip


def is_private_ip(ip: Optional[str]) -> bool:
    """True for loopback, private, link-local or unparsable addresses"""
    if not ip:
        return True
    try:
        address = ipaddress.ip_address(_strip_mapped_prefix(ip))
    except ValueError:
        return True
    return address.is_private or address.is_loopback or address.is_link_local


def get_real_ip(request: Request) -> Optional[str]:
    """
    Resolve the client IP behind Cloudflare / nginx proxies.

    Order: cf-connecting-ip, x-real-ip, first public x-forwarded-for
    entry, then the socket peer.
    """
    headers = request.headers

    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip:
        return _strip_mapped_prefix(cf_ip)

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return _strip_mapped_prefix(real_ip)

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        candidates = [_strip_mapped_prefix(part) for part in forwarded.split(",") if part.strip()]
        for candidate in candidates:
            if not is_private_ip(candidate):
                return candidate
        if candidates:
            return candidates[0]

    if request.client and request.client.host:
        return _strip_mapped_prefix(request.client.host)
    return None


def _cache_country(ip: str, country: Optional[str]) -> None:
    now = time.time()
    if len(_country_cache) >= MAX_CACHE_ENTRIES:
        for key in [key for key, (expires_at, _) in _country_cache.items() if expires_at <= now]:
            _country_cache.pop(key, None)
    if len(_country_cache) >= MAX_CACHE_ENTRIES:
        # dicts keep insertion order, so the first key is the oldest entry
        _country_cache.pop(next(iter(_country_cache)), None)
    _country_cache[ip] = (now + CACHE_TTL_SECONDS, country)


def get_country_from_ip(ip: Optional[str]) -> Optional[str]:
    """Country name for an IP, cached for 24 hours"""
    if is_private_ip(ip):
        return "Local"

    cached = _country_cache.get(ip)
    if cached:
        if cached[0] > time.time():
            return cached[1]
        _country_cache.pop(ip, None)

    country = None
    try:
        response = httpx.get(IP_API_URL.format(ip=ip), timeout=3.0)
        data = response.json()
        if data.get("status") == "success":
            country = data.get("country")
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Could not resolve country for {ip}: {str(e)}")
        return None

    _cache_country(ip, country)
    return country
