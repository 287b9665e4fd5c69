"""Currency normalizer: converts claim amounts into a company's base currency.

The engine only depends on the `convert(amount, from_currency, to_currency)`
interface. Rate sourcing and caching belong to the normalizer: rates come
from a source callable and are cached for FX_RATES_TTL_SECONDS.
"""
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Protocol

from app.core.config import settings
from app.core.exceptions import CurrencyConversionError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Static mid-market rates, units of currency per 1 USD (replace with live API in production)
USD_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.85"),
    "GBP": Decimal("0.73"),
    "INR": Decimal("83.12"),
    "JPY": Decimal("149.50"),
    "CAD": Decimal("1.35"),
    "AUD": Decimal("1.52"),
    "CNY": Decimal("7.24"),
    "CHF": Decimal("0.88"),
    "SGD": Decimal("1.34"),
}

SUPPORTED_CURRENCIES = tuple(USD_RATES)


class CurrencyNormalizer(Protocol):
    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal: ...


def static_rates() -> dict[str, Decimal]:
    return dict(USD_RATES)


class CachedRateNormalizer:
    """Cross-rate converter (via USD) over a TTL-cached rate table."""

    def __init__(
        self,
        rate_source: Callable[[], dict[str, Decimal]] = static_rates,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._rate_source = rate_source
        self._ttl = settings.FX_RATES_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._rates: dict[str, Decimal] | None = None
        self._fetched_at: float | None = None

    def rates(self) -> dict[str, Decimal]:
        now = self._clock()
        if self._rates is None or self._fetched_at is None or now - self._fetched_at >= self._ttl:
            try:
                fetched = self._rate_source()
            except Exception as exc:
                raise CurrencyConversionError(f"Exchange rates unavailable: {exc}") from exc
            self._rates = {code.upper(): Decimal(str(rate)) for code, rate in fetched.items()}
            self._fetched_at = now
            logger.info("fx: refreshed %d exchange rates", len(self._rates))
        return self._rates

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        src, dst = from_currency.upper(), to_currency.upper()
        if src == dst:
            return Decimal("1")
        rates = self.rates()
        if src not in rates or dst not in rates:
            raise CurrencyConversionError(f"Exchange rate not available for {src} to {dst}")
        return rates[dst] / rates[src]

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        converted = Decimal(str(amount)) * self.rate(from_currency, to_currency)
        return converted.quantize(CENT, rounding=ROUND_HALF_UP)


_default_normalizer: CachedRateNormalizer | None = None


def get_normalizer() -> CurrencyNormalizer:
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = CachedRateNormalizer()
    return _default_normalizer
