"""
Data Collection Module
======================

Collects the data one dashboard refresh needs from the CoinGecko API:
- Current USD price (/simple/price)
- Historical price series (/coins/{id}/market_chart)
- Asset metadata, used for the logo image (/coins/{id})

The three requests run in parallel and are joined with "all must succeed"
semantics. No retry, backoff or caching; a failed refresh is superseded by
the next one.
"""

import requests
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging
from concurrent.futures import ThreadPoolExecutor

from price_predictor import Sample

logger = logging.getLogger(__name__)


class DataUnavailableError(Exception):
    """Base error for any failed acquisition"""


class TransportError(DataUnavailableError):
    """Network level failure (DNS, connection, timeout)"""


class HTTPStatusError(DataUnavailableError):
    """Non-success HTTP status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingFieldError(DataUnavailableError):
    """Successful response without the expected field"""


@dataclass
class MarketSnapshot:
    """Joined result of one acquisition pass"""
    asset: str
    current_price: float
    series: List[Sample] = field(default_factory=list)
    image_url: Optional[str] = None


class CoinGeckoCollector:
    """
    CoinGecko client for price, history and metadata
    """

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: str = '',
        proxy_prefix: str = '',
        timeout: float = 10,
        history_days: int = 365,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the collector

        Args:
            base_url: CoinGecko API root
            api_key: Optional demo API key, sent as a header when set
            proxy_prefix: Prepended verbatim to every request URL
            timeout: Per-request timeout in seconds
            history_days: Days of history requested from market_chart
            session: Optional requests session (shared across calls)
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.proxy_prefix = proxy_prefix
        self.timeout = timeout
        self.history_days = history_days
        self.session = session or requests.Session()

        logger.info(f"CoinGeckoCollector initialized ({self.base_url}, history: {history_days}d)")

    @classmethod
    def from_config(cls, config) -> 'CoinGeckoCollector':
        return cls(
            base_url=config.API['base_url'],
            api_key=config.get_api_key('coingecko'),
            proxy_prefix=config.API['proxy_prefix'],
            timeout=config.API['timeout_seconds'],
            history_days=config.API['history_days']
        )

    def _get_json(self, endpoint: str, params: Optional[Dict] = None):
        url = f"{self.proxy_prefix}{self.base_url}{endpoint}"
        headers = {'x-cg-demo-api-key': self.api_key} if self.api_key else None

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error fetching {endpoint}: {e}")
            raise TransportError(f"Request to {endpoint} failed: {e}") from e

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"Error fetching {endpoint}: HTTP {response.status_code}")
            raise HTTPStatusError(
                f"HTTP error! Status: {response.status_code}",
                status_code=response.status_code
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise MissingFieldError(f"Response from {endpoint} is not JSON") from e

    def get_current_price(self, asset: str) -> float:
        """
        Get the current USD price

        Args:
            asset: CoinGecko asset id (e.g. 'bitcoin')

        Returns:
            Current price in USD
        """
        data = self._get_json('/simple/price', {'ids': asset, 'vs_currencies': 'usd'})
        price = (data.get(asset) or {}).get('usd') if isinstance(data, dict) else None
        # A zero price is treated the same as a missing one
        if not price:
            raise MissingFieldError('Price data unavailable')
        return float(price)

    def get_market_chart(self, asset: str, days: Optional[int] = None) -> List[Sample]:
        """
        Get the historical USD price series

        Args:
            asset: CoinGecko asset id
            days: Days of history (defaults to self.history_days)

        Returns:
            Samples in the order delivered by the API (ascending timestamp)
        """
        days = self.history_days if days is None else days
        data = self._get_json(
            f'/coins/{asset}/market_chart',
            {'vs_currency': 'usd', 'days': days}
        )
        prices = data.get('prices') if isinstance(data, dict) else None
        if prices is None:
            raise MissingFieldError('Historical prices unavailable')
        return [Sample(int(ts), float(price)) for ts, price in prices]

    def get_coin_image(self, asset: str) -> Optional[str]:
        """Get the small logo URL for an asset, or None if the metadata has none"""
        data = self._get_json(f'/coins/{asset}')
        image = data.get('image') if isinstance(data, dict) else None
        if not isinstance(image, dict):
            return None
        return image.get('small') or None

    def fetch_snapshot(self, asset: str) -> MarketSnapshot:
        """
        Fetch price, history and metadata in parallel

        Args:
            asset: CoinGecko asset id

        Returns:
            MarketSnapshot once all three requests succeed

        Raises:
            DataUnavailableError: if any of the three fails
        """
        logger.info(f"Fetching market data for {asset}...")

        with ThreadPoolExecutor(max_workers=3) as executor:
            price_future = executor.submit(self.get_current_price, asset)
            history_future = executor.submit(self.get_market_chart, asset)
            image_future = executor.submit(self.get_coin_image, asset)

            try:
                current_price = price_future.result()
                series = history_future.result()
                image_url = image_future.result()
            except DataUnavailableError:
                raise
            except Exception as e:
                raise DataUnavailableError(f"Unexpected response for {asset}: {e}") from e

        logger.info(f"✓ {asset}: ${current_price:,.2f}, {len(series)} samples")
        return MarketSnapshot(
            asset=asset,
            current_price=current_price,
            series=series,
            image_url=image_url
        )
