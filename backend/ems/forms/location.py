from __future__ import annotations
"""Location acquisition and presence checks.

A provider is any zero-argument callable returning ``Coordinates`` (or a
``{lat, lng}`` mapping). It may block, raise ``PermissionError`` when the user
denies access, fail in any other way, or return no usable fix. Every one of
those ends in ``LocationUnavailableError``. ``acquire_location`` always resolves
within the timeout: the provider runs on a detached worker that is abandoned, not
cancelled, when it overruns.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ems.config import settings
from ems.errors import LocationUnavailableError, ValidationError
from ems.services.records import Coordinates

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], Any]


def acquire_location(provider: LocationProvider, timeout: Optional[float] = None) -> Coordinates:
    timeout = settings.location_timeout() if timeout is None else timeout
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix='ems-location')
    future = pool.submit(provider)
    try:
        raw = future.result(timeout=timeout)
    except FutureTimeout:
        raise LocationUnavailableError(f'location timed out after {timeout:g}s')
    except PermissionError:
        raise LocationUnavailableError('location permission denied')
    except Exception as exc:
        logger.warning('location provider failed: %r', exc)
        raise LocationUnavailableError('location provider failed') from exc
    finally:
        pool.shutdown(wait=False)
    coords = _usable(raw)
    if coords is None:
        raise LocationUnavailableError('location unavailable')
    return coords


def _no_fix(value: Any) -> bool:
    # denied browser geolocation arrives as {lat: null, lng: null}
    return value is None or (isinstance(value, dict) and (value.get('lat') is None or value.get('lng') is None))


def _usable(value: Any) -> Optional[Coordinates]:
    """Coordinates for a well-formed provider fix, None for anything else."""
    if _no_fix(value):
        return None
    try:
        return Coordinates.from_value(value)
    except ValidationError:
        logger.warning('discarding malformed location %r', value)
        return None


@dataclass(frozen=True)
class PresenceCheck:
    coords: Optional[Coordinates]
    warning: Optional[str] = None


def check_presence(location: Any, degraded: bool = False) -> PresenceCheck:
    """Gate for arrival confirmation and closeout.

    A missing location blocks the transition unless the caller is in a
    degraded (offline) context, where it becomes a warning.
    """
    coords = None if _no_fix(location) else Coordinates.from_value(location)
    if coords is not None:
        return PresenceCheck(coords)
    if degraded:
        logger.warning('location unavailable in degraded mode; proceeding without presence check')
        return PresenceCheck(None, warning='location could not be verified (offline)')
    raise LocationUnavailableError('GPS must be enabled to confirm presence at the branch')


__all__ = ['LocationProvider', 'acquire_location', 'PresenceCheck', 'check_presence']
