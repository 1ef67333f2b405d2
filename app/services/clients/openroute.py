import asyncio
import httpx
import logging
from typing import List, Dict, Any, Optional
from app.core.config import settings
from app.schemas.cluster import Coordinates
from app.services.geo import DriveTimeResult, MatrixResult, RoutingError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 504}
UNREACHABLE_MINUTES = 24 * 60

class OpenRouteClientError(Exception):
    """Custom exception for OpenRouteService client errors"""
    pass

class OpenRouteServiceClient:
    """
    A client for interacting with the OpenRouteService API.

    Implements the GeoProvider interface: failures are logged and returned
    as None or a failed DriveTimeResult, never raised to the caller.
    """

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: int = None,
        max_retries: int = None,
        retry_delay: float = None
    ):
        """
        Initialize the OpenRouteService client.

        Args:
            api_key: OpenRouteService API key
            base_url: Base URL for the OpenRouteService API
            timeout: Request timeout in seconds
            max_retries: Attempts per request when rate limited or timed out
            retry_delay: Initial delay between attempts in seconds, doubled each retry
        """
        self.api_key = api_key or settings.OPENROUTE_API_KEY
        self.base_url = base_url or settings.OPENROUTE_BASE_URL
        self.timeout = timeout or settings.OPENROUTE_TIMEOUT
        self.max_retries = max_retries or settings.OPENROUTE_MAX_RETRIES
        self.retry_delay = settings.OPENROUTE_RETRY_DELAY if retry_delay is None else retry_delay
        self.profile = settings.OPENROUTE_PROFILE

        if not self.api_key:
            raise ValueError("OpenRouteService API key is required")
        if not self.base_url:
            raise ValueError("OpenRouteService base URL is required")

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Make an HTTP request to the OpenRouteService API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments to pass to the request

        Returns:
            JSON response from the API

        Raises:
            OpenRouteClientError: If the request fails
        """
        url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        headers = kwargs.pop('headers', {})
        headers['Authorization'] = self.api_key

        last_error = None
        for attempt in range(self.max_retries):
            if attempt > 0:
                await asyncio.sleep(self.retry_delay * (2 ** attempt))
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=headers, **kwargs)
                    response.raise_for_status()
                    try:
                        return response.json()
                    except ValueError as e:
                        last_error = f"Invalid JSON from OpenRouteService API: {str(e)}"
                        break
            except httpx.HTTPStatusError as e:
                last_error = f"OpenRouteService API error ({e.response.status_code}): {e.response.text}"
                if e.response.status_code not in RETRYABLE_STATUS_CODES:
                    break
                logger.warning("%s (attempt %d/%d)", last_error, attempt + 1, self.max_retries)
            except httpx.HTTPError as e:
                last_error = f"Error making request to OpenRouteService API: {str(e)}"
                logger.warning("%s (attempt %d/%d)", last_error, attempt + 1, self.max_retries)

        logger.error(last_error)
        raise OpenRouteClientError(last_error)

    async def geocode(self, address: str) -> Optional[Coordinates]:
        """
        Resolve an address to coordinates.

        Returns:
            Coordinates, or None when the address is unknown or the request fails
        """
        if not address or not address.strip():
            return None

        params = {
            'api_key': self.api_key,
            'text': address,
            'boundary.country': settings.OPENROUTE_COUNTRY,
            'size': 1,
        }
        try:
            response = await self._make_request('GET', 'geocode/search', params=params)
        except OpenRouteClientError as e:
            logger.warning("Geocoding failed for %s: %s", address, str(e))
            return None

        features = response.get('features') or []
        if not features:
            logger.warning("No geocoding results for: %s", address)
            return None

        lng, lat = features[0]['geometry']['coordinates'][:2]
        return Coordinates(lat=lat, lng=lng)

    async def distance(self, origin: Coordinates, destination: Coordinates) -> DriveTimeResult:
        """
        Driving duration (minutes) and distance (km) between two points.
        """
        payload = {
            'coordinates': [[origin.lng, origin.lat], [destination.lng, destination.lat]],
        }
        try:
            response = await self._make_request(
                'POST', f'v2/directions/{self.profile}', json=payload
            )
            summary = response['routes'][0]['summary']
        except OpenRouteClientError as e:
            return DriveTimeResult.failure(RoutingError(str(e)))
        except (KeyError, IndexError, TypeError):
            return DriveTimeResult.failure(RoutingError("Unexpected response format from OpenRouteService Directions API"))

        return DriveTimeResult.success(
            duration=summary.get('duration', 0) / 60,
            distance=summary.get('distance', 0) / 1000,
        )

    async def matrix(self, coordinates: List[Coordinates]) -> Optional[MatrixResult]:
        """
        Get duration (minutes) and distance (km) matrices from the Matrix API.

        Returns:
            MatrixResult, or None when the request fails
        """
        if len(coordinates) > settings.OPENROUTE_MAX_MATRIX_LOCATIONS:
            logger.warning(
                "Matrix request for %d locations exceeds the limit of %d",
                len(coordinates), settings.OPENROUTE_MAX_MATRIX_LOCATIONS
            )
            return None

        payload = {
            'locations': [[point.lng, point.lat] for point in coordinates],
            'metrics': ['duration', 'distance'],
            'units': 'km',
        }
        try:
            response = await self._make_request(
                'POST', f'v2/matrix/{self.profile}', json=payload
            )
        except OpenRouteClientError as e:
            logger.error("Error getting distance matrix: %s", str(e))
            return None

        if not all(key in response for key in ('durations', 'distances')):
            logger.error("Unexpected response format from OpenRouteService Matrix API")
            return None

        # Unreachable pairs come back as null
        durations = [
            [UNREACHABLE_MINUTES if value is None else value / 60 for value in row]
            for row in response['durations']
        ]
        distances = [[value or 0 for value in row] for row in response['distances']]
        return MatrixResult(durations=durations, distances=distances)
