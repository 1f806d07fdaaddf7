"""
Location extraction from free text.

Resolution order: a known 5-digit ZIP, then a city name (substring, in table
order), then a Bay Area county name with or without the " County" suffix.
No network access.
"""
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from smart_assistant.services.reference.loader import LocationTables

ZIP_PATTERN = re.compile(r"\b(\d{5})\b")
COUNTY_SUFFIX = " County"


@dataclass(frozen=True)
class LocationMatch:
    zip: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class LocationResolver:
    def __init__(self, tables: LocationTables):
        self.tables = tables
        self._city_keys = [(city, city.lower()) for city in tables.city_to_county]
        self._county_keys = [
            (county, county.lower(), county.replace(COUNTY_SUFFIX, "").lower())
            for county in tables.counties
        ]

    def resolve(self, query: str) -> Optional[LocationMatch]:
        """Return the first location found in query, or None."""
        if not query:
            return None

        zip_match = ZIP_PATTERN.search(query)
        if zip_match:
            zip_code = zip_match.group(1)
            city = self.tables.zip_to_city.get(zip_code)
            if city:
                return LocationMatch(
                    zip=zip_code,
                    city=city,
                    county=self.tables.city_to_county.get(city),
                )

        lower_query = query.lower()
        for city, city_lower in self._city_keys:
            if city_lower in lower_query:
                return LocationMatch(city=city, county=self.tables.city_to_county[city])

        for county, county_lower, bare_lower in self._county_keys:
            if county_lower in lower_query or bare_lower in lower_query:
                return LocationMatch(county=county)

        return None
