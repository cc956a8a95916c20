"""
Forecaster command-line entry point.

    python main.py "New York, NY" --ip 8.8.8.8
"""

import argparse
import asyncio
import sys

from loguru import logger

from forecaster.datasource.timezone import TimezoneResolver
from forecaster.models import Forecast, TimezoneResult
from forecaster.retriever import ForecastRetriever
from forecaster.services.client import ServiceClient


def render(forecast: Forecast, timezone: TimezoneResult) -> str:
    lines = [
        forecast.formatted_address or forecast.postal_code,
        f"Now: {forecast.current_temp_display}, {forecast.current_conditions}",
        f"High {forecast.high_temp_display} / Low {forecast.low_temp_display}",
        forecast.detailed_forecast,
        "",
    ]
    for day in forecast.extended_forecast:
        lines.append(f"{day.day_label:<10} {day.date_label:<12} {day.detailed_forecast}")
    lines.append("")
    lines.append(f"{forecast.cache_status} | Timezone: {timezone.timezone}")
    if timezone.display_city:
        lines.append(f"Detected location: {timezone.display_city}")
    return "\n".join(lines)


async def main(address: str, ip_address: str | None) -> int:
    """Run one lookup and print it."""
    logger.info(f"Retrieving forecast for '{address}'")

    async with ServiceClient() as client:
        retriever = ForecastRetriever(client)
        resolver = TimezoneResolver(client)

        # Timezone has no data dependency on the forecast
        result, timezone = await asyncio.gather(
            retriever.retrieve(address),
            resolver.resolve(ip_address),
        )
        logger.debug(f"Service health: {client.get_health_status()}")

    if not result.ok:
        print(result.message, file=sys.stderr)
        return 1

    print(render(result.unwrap(), timezone))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Show the weather forecast for an address")
    parser.add_argument("address", help="Free-text address, e.g. 'New York, NY'")
    parser.add_argument("--ip", dest="ip_address", default=None, help="Requester IP for timezone")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.address, args.ip_address)))
