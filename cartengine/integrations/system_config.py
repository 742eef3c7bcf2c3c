"""System-wide fee configuration: service fee and distance-based delivery fee table."""
from __future__ import annotations

from cartengine.core.config import DeliveryConfig, Settings
from cartengine.core.constants import DEFAULT_SERVICE_FEE

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)


class SystemConfig:
    """Flat reads of the platform's fee settings."""

    def __init__(
        self,
        service_fee: float = DEFAULT_SERVICE_FEE,
        delivery: DeliveryConfig | None = None,
    ) -> None:
        self.service_fee = service_fee
        self.delivery = delivery or DeliveryConfig()

    @classmethod
    def from_settings(cls, settings: Settings) -> SystemConfig:
        return cls(service_fee=settings.service_fee, delivery=settings.delivery)

    @property
    def max_delivery_radius_km(self) -> float:
        return self.delivery.max_radius_km

    def calculate_delivery_fee(self, distance_km: float) -> float:
        """Fee of the first range covering the distance; beyond the last range each
        extra 100 m adds ``extra_range_fee``."""
        if distance_km <= 0:
            logger.warning("Invalid distance for delivery fee calculation: %s km", distance_km)
            return 0.0

        ranges = sorted(self.delivery.fee_ranges)
        if not ranges:
            logger.warning("No delivery fee ranges configured")
            return 0.0

        for max_distance, fee in ranges:
            if distance_km <= max_distance:
                return fee

        last_distance, last_fee = ranges[-1]
        extra_distance = distance_km - last_distance
        return last_fee + (extra_distance * 10) * self.delivery.extra_range_fee
