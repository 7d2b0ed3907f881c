"""
Minimal OpenStreetMap Overpass API client shared by the feature and road
geometry providers.
"""
import logging
import math
from typing import Any, Dict, List, Optional

import requests

from routerisk.config import settings
from routerisk.exceptions import ProviderError

logger = logging.getLogger(__name__)


class OverpassClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url or settings.OVERPASS_API_URL
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self.session = session

    def query(self, body: str, provider: str = "overpass") -> List[Dict[str, Any]]:
        """
        Run an Overpass QL body and return its elements.

        Args:
            body: Query statements between the settings header and "out"
            provider: Provider name reported in errors

        Raises:
            ProviderError: request failed or the response had no element list
        """
        query = f"""
        [out:json][timeout:{int(self.timeout)}];
        (
          {body}
        );
        out center tags;
        """

        try:
            post = self.session.post if self.session is not None else requests.post
            response = post(self.api_url, data={"data": query}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise ProviderError(
                provider=provider,
                reason_code="request_failed",
                message=f"Overpass query failed: {e}",
            ) from e
        except ValueError as e:
            raise ProviderError(
                provider=provider,
                reason_code="malformed_response",
                message=f"Overpass response is not JSON: {e}",
            ) from e

        elements = data.get("elements") if isinstance(data, dict) else None
        if not isinstance(elements, list):
            raise ProviderError(
                provider=provider,
                reason_code="malformed_response",
                message="Overpass response has no elements list",
            )

        logger.debug(f"Overpass returned {len(elements)} elements")
        return elements


def element_location(element: Any) -> Optional[tuple]:
    """
    (lat, lon) of a node, or the center of a way/relation.

    Returns None for elements without a usable position; garbled
    coordinates are logged and skipped so one bad element never fails a
    whole lookup.
    """
    if not isinstance(element, dict):
        logger.warning(f"Ignoring non-object Overpass element: {element!r}")
        return None

    source = element if "lat" in element and "lon" in element else element.get("center")
    if not isinstance(source, dict) or "lat" not in source or "lon" not in source:
        return None

    try:
        latitude, longitude = float(source["lat"]), float(source["lon"])
    except (TypeError, ValueError):
        logger.warning(f"Ignoring Overpass element {element.get('id')} with garbled coordinates")
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        logger.warning(f"Ignoring Overpass element {element.get('id')} with non-finite coordinates")
        return None
    return (latitude, longitude)
