import logging
import os
from datetime import date

import requests

from agrosanga.analysis import current_season, simulate_weather

logger = logging.getLogger(__name__)


class WeatherService:
    """Current conditions for the crop recommendation page.

    Uses OpenWeather when an API key and a location are available, and the
    placeholder snapshot otherwise.
    """

    def __init__(self, api_key=None, timeout=5):
        self.api_key = api_key or os.getenv('OPENWEATHER_API_KEY')
        self.base_url = "https://api.openweathermap.org/data/2.5/weather"
        self.timeout = timeout

    def get_weather_data(self, city):
        if not self.api_key or not city:
            return None
        try:
            params = {
                'q': city,
                'appid': self.api_key,
                'units': 'metric'
            }
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            if response.status_code != 200:
                logger.warning("Weather API returned %s for %s", response.status_code, city)
                return None
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Weather API error for %s: %s", city, e)
            return None

    def current(self, city=None, rng=None, today=None):
        today = today or date.today()
        data = self.get_weather_data(city)
        if not data:
            snapshot = simulate_weather(rng, today)
            snapshot['source'] = 'simulated'
            return snapshot

        try:
            return {
                'temperature': round(data['main']['temp']),
                'humidity': round(data['main']['humidity']),
                'rainfall': round(data.get('rain', {}).get('1h', 0)),
                'season': current_season(today.month),
                'location': city,
                'source': 'openweather',
            }
        except (KeyError, TypeError) as e:
            logger.warning("Unexpected weather payload for %s: %s", city, e)
            snapshot = simulate_weather(rng, today)
            snapshot['source'] = 'simulated'
            return snapshot
