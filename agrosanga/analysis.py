"""
PLACEHOLDER analysis.

Nothing here reads the uploaded soil report or runs a model. The functions
fabricate numbers in plausible ranges so the result pages have something to
render until a real inference service is plugged in. Do not read meaning
into the figures.
"""

import random
import time
from datetime import date

YIELD_RECOMMENDATIONS = [
    "Soil pH is optimal for most crops",
    "Consider organic fertilizer application",
    "Monitor nitrogen levels during growing season",
    "Good phosphorus content supports root development",
]

CANDIDATE_CROPS = ['Rice', 'Wheat', 'Maize', 'Sugarcane', 'Cotton', 'Soybean', 'Tomato', 'Onion']

COMMON_PESTS = ['Aphids', 'Stem borer', 'Leaf roller', 'Thrips']
PREVENTIVE_MEASURES = [
    'Regular field monitoring',
    'Use of pheromone traps',
    'Biological pest control',
    'Crop rotation practices',
]


def _uniform(rng, low, high, digits):
    return round(low + rng.random() * (high - low), digits)


def current_season(month):
    """Season for a calendar month (1-12)."""
    if 3 <= month <= 6:
        return 'Summer'
    if 7 <= month <= 10:
        return 'Monsoon'
    return 'Winter'


def pause(seconds):
    """Stand-in for the time a real analysis would take."""
    if seconds and seconds > 0:
        time.sleep(seconds)


def simulate_yield_analysis(rng=None):
    rng = rng or random.Random()
    return {
        'soil_data': {
            'pH': _uniform(rng, 6.0, 8.5, 2),
            'nitrogen': _uniform(rng, 15, 40, 1),           # ppm
            'phosphorus': _uniform(rng, 8, 25, 1),          # ppm
            'potassium': _uniform(rng, 80, 200, 1),         # ppm
            'organicMatter': _uniform(rng, 1.5, 4.0, 2),    # %
        },
        'predicted_yield': _uniform(rng, 25, 75, 2),        # tons/hectare
        'recommendations': list(YIELD_RECOMMENDATIONS),
    }


def simulate_weather(rng=None, today=None):
    rng = rng or random.Random()
    today = today or date.today()
    return {
        'temperature': round(25 + rng.random() * 10),       # °C
        'humidity': round(60 + rng.random() * 30),          # %
        'rainfall': round(50 + rng.random() * 100),         # mm
        'season': current_season(today.month),
    }


def simulate_crop_recommendation(weather, rng=None):
    rng = rng or random.Random()
    crops = CANDIDATE_CROPS[:3 + rng.randrange(2)]
    return {
        'recommended_crops': [
            {
                'crop_name': crop,
                'suitability': _uniform(rng, 70, 95, 1),
                'expected_yield': f"{_uniform(rng, 15, 35, 1)} tons/hectare",
                'growing_period': f"{90 + rng.randrange(60)} days",
            }
            for crop in crops
        ],
        'fertilizers': [
            {
                'type': 'NPK (10:26:26)',
                'dosage': f"{_uniform(rng, 150, 250, 1)} kg/hectare",
                'application_time': 'At sowing and flowering',
            },
            {
                'type': 'Organic Compost',
                'dosage': f"{_uniform(rng, 2, 5, 1)} tons/hectare",
                'application_time': 'Before land preparation',
            },
        ],
        'pest_disease_info': {
            'common_pests': list(COMMON_PESTS),
            'preventive_measures': list(PREVENTIVE_MEASURES),
        },
        'weather_data': dict(weather),
    }
