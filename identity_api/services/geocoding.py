"""Address geocoding through Google, Azure Maps or OpenStreetMap Nominatim.

Providers never raise: every failure (disabled, misconfigured, HTTP error,
no match) comes back as a failed GeocodingResult so callers can fall back
to other coordinates.
"""

import logging
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests

logger = logging.getLogger(__name__)

GOOGLE_URL = 'https://maps.googleapis.com/maps/api/geocode/json'
AZURE_URL = 'https://atlas.microsoft.com/search/address/json'


@dataclass
class GeocodingRequest:
    line1: str = ''
    line2: Optional[str] = None
    city: str = ''
    state_province: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = ''
    country_code: str = ''

    def to_address_string(self):
        parts = [self.line1, self.line2, self.city, self.state_province, self.postal_code, self.country]
        return ', '.join(p.strip() for p in parts if p and p.strip())


@dataclass
class GeocodingResult:
    success: bool
    provider: str = 'none'
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    formatted_address: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def succeeded(cls, latitude, longitude, provider, formatted_address=None):
        return cls(
            success=True,
            provider=provider,
            latitude=Decimal(str(latitude)),
            longitude=Decimal(str(longitude)),
            formatted_address=formatted_address,
        )

    @classmethod
    def failed(cls, error, provider='none'):
        return cls(success=False, provider=provider, error=error)

    def to_dict(self):
        return {
            'success': self.success,
            'provider': self.provider,
            'latitude': float(self.latitude) if self.latitude is not None else None,
            'longitude': float(self.longitude) if self.longitude is not None else None,
            'formattedAddress': self.formatted_address,
            'error': self.error,
        }


# Successful lookups, keyed by provider + lowercased address: (result, expires_at).
# Insertion ordered, so the first key is always the oldest entry.
_cache = {}
_cache_lock = threading.Lock()
CACHE_MAX_ENTRIES = 5000


def _cache_get(key):
    with _cache_lock:
        entry = _cache.get(key)
        if entry is None:
            return None
        result, expires_at = entry
        if time.time() >= expires_at:
            del _cache[key]
            return None
        return result


def _cache_set(key, result, ttl_seconds):
    if ttl_seconds <= 0:
        return
    now = time.time()
    with _cache_lock:
        expired = [k for k, (_, expires_at) in _cache.items() if expires_at <= now]
        for k in expired:
            del _cache[k]
        _cache.pop(key, None)
        while len(_cache) >= CACHE_MAX_ENTRIES:
            del _cache[next(iter(_cache))]
        _cache[key] = (result, now + ttl_seconds)


def clear_cache():
    with _cache_lock:
        _cache.clear()


class Geocoder:
    """Base provider: caching and error handling around _lookup()."""

    name = 'none'

    def __init__(self, cache_enabled=True, cache_minutes=1440, timeout=10, session=None):
        self.cache_enabled = cache_enabled
        self.cache_seconds = cache_minutes * 60
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def is_configured(self):
        return True

    def geocode(self, request: GeocodingRequest) -> GeocodingResult:
        if not self.is_configured:
            return GeocodingResult.failed(f"Provider '{self.name}' is not configured", self.name)

        address = request.to_address_string()
        if not address:
            return GeocodingResult.failed('Address is empty', self.name)

        cache_key = f"{self.name}:{address.lower()}"
        if self.cache_enabled:
            cached = _cache_get(cache_key)
            if cached is not None:
                logger.debug(f"Geocoding cache hit for {address}")
                return cached

        try:
            result = self._lookup(request, address)
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"{self.name} geocoding error for {address}: {e}")
            return GeocodingResult.failed(f"Geocoding error: {e}", self.name)

        if result.success:
            if self.cache_enabled:
                _cache_set(cache_key, result, self.cache_seconds)
            logger.info(f"Geocoded {address} to ({result.latitude}, {result.longitude}) via {self.name}")
        else:
            logger.warning(f"{self.name} geocoding failed for {address}: {result.error}")
        return result

    def _lookup(self, request, address) -> GeocodingResult:
        raise NotImplementedError


class GoogleGeocoder(Geocoder):
    name = 'google'

    def __init__(self, api_key, region=None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.region = region

    @property
    def is_configured(self):
        return bool(self.api_key)

    def _lookup(self, request, address):
        params = {'address': address, 'key': self.api_key}
        if self.region:
            params['region'] = self.region

        response = self.session.get(GOOGLE_URL, params=params, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()

        status = data.get('status')
        if status != 'OK':
            error = 'No results found' if status == 'ZERO_RESULTS' else f"API returned: {status}"
            return GeocodingResult.failed(error, self.name)

        results = data.get('results') or []
        if not results:
            return GeocodingResult.failed('No results found', self.name)

        first = results[0]
        location = first['geometry']['location']
        return GeocodingResult.succeeded(location['lat'], location['lng'], self.name, first.get('formatted_address'))


class AzureMapsGeocoder(Geocoder):
    name = 'azure'

    def __init__(self, subscription_key, **kwargs):
        super().__init__(**kwargs)
        self.subscription_key = subscription_key

    @property
    def is_configured(self):
        return bool(self.subscription_key)

    def _lookup(self, request, address):
        params = {
            'api-version': '1.0',
            'query': address,
            'subscription-key': self.subscription_key,
        }
        if request.country_code:
            params['countrySet'] = request.country_code.upper()

        response = self.session.get(AZURE_URL, params=params, timeout=self.timeout)
        response.raise_for_status()
        results = response.json().get('results') or []
        if not results:
            return GeocodingResult.failed('No results found', self.name)

        first = results[0]
        position = first['position']
        formatted = (first.get('address') or {}).get('freeformAddress')
        return GeocodingResult.succeeded(position['lat'], position['lon'], self.name, formatted)


class NominatimGeocoder(Geocoder):
    """OpenStreetMap Nominatim. The public instance allows one request per second."""

    name = 'nominatim'

    # Shared by every instance: the usage policy limits the client, not the object
    _rate_lock = threading.Lock()
    _last_request_at = 0.0

    def __init__(self, base_url, user_agent, contact_email=None, rate_limit_ms=1000, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent
        self.contact_email = contact_email
        self.rate_limit_ms = rate_limit_ms

    def _lookup(self, request, address):
        params = {'q': address, 'format': 'json', 'limit': 1}
        if request.country_code:
            params['countrycodes'] = request.country_code.lower()
        if self.contact_email:
            params['email'] = self.contact_email

        with NominatimGeocoder._rate_lock:
            wait = self.rate_limit_ms / 1000.0 - (time.monotonic() - NominatimGeocoder._last_request_at)
            if wait > 0:
                time.sleep(wait)
            try:
                response = self.session.get(
                    f"{self.base_url}/search",
                    params=params,
                    headers={'User-Agent': self.user_agent},
                    timeout=self.timeout,
                )
            finally:
                NominatimGeocoder._last_request_at = time.monotonic()

        response.raise_for_status()
        results = response.json()
        if not results:
            return GeocodingResult.failed('No results found', self.name)

        first = results[0]
        return GeocodingResult.succeeded(first['lat'], first['lon'], self.name, first.get('display_name'))


class DisabledGeocoder(Geocoder):
    def __init__(self, reason='Geocoding is disabled', provider='none'):
        super().__init__(cache_enabled=False)
        self.reason = reason
        self.name = provider

    def geocode(self, request):
        return GeocodingResult.failed(self.reason, self.name)


def create_geocoder(config) -> Geocoder:
    """Build the provider named by GEOCODING_PROVIDER."""
    provider = (config.get('GEOCODING_PROVIDER') or 'none').lower()
    if not config.get('GEOCODING_ENABLED') or provider == 'none':
        return DisabledGeocoder()

    common = {
        'cache_enabled': config.get('GEOCODING_CACHE_ENABLED', True),
        'cache_minutes': config.get('GEOCODING_CACHE_MINUTES', 1440),
        'timeout': config.get('GEOCODING_TIMEOUT', 10),
    }

    if provider == 'google':
        return GoogleGeocoder(config.get('GOOGLE_GEOCODING_API_KEY'), config.get('GOOGLE_GEOCODING_REGION'), **common)
    if provider == 'azure':
        return AzureMapsGeocoder(config.get('AZURE_MAPS_SUBSCRIPTION_KEY'), **common)
    if provider == 'nominatim':
        return NominatimGeocoder(
            base_url=config.get('NOMINATIM_BASE_URL', 'https://nominatim.openstreetmap.org'),
            user_agent=config.get('NOMINATIM_USER_AGENT', 'FuntimeIdentityApi/1.0'),
            contact_email=config.get('NOMINATIM_CONTACT_EMAIL'),
            rate_limit_ms=config.get('NOMINATIM_RATE_LIMIT_MS', 1000),
            **common,
        )

    logger.warning(f"Unknown geocoding provider '{provider}'")
    return DisabledGeocoder(f"Provider '{provider}' is not configured", provider)


def get_geocoder() -> Geocoder:
    """The geocoder for the current app, created once per app."""
    from flask import current_app

    geocoder = current_app.extensions.get('geocoder')
    if geocoder is None:
        geocoder = create_geocoder(current_app.config)
        current_app.extensions['geocoder'] = geocoder
    return geocoder
