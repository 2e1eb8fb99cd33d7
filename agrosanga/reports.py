"""
reports.py: Soil report flows behind the two result pages
----------------------------------------------------------

Both flows: gate the file, upload it under the farmer's own prefix, run the
placeholder analysis, save the result row. An upload failure aborts the
flow; a failed save is logged and the result is still returned.
"""

import logging
import math

from agrosanga import analysis
from agrosanga.backends import SOIL_REPORTS_BUCKET, BackendError
from agrosanga.uploads import check_upload, storage_path

logger = logging.getLogger(__name__)


class ReportError(Exception):

    def __init__(self, title, message):
        super().__init__(f"{title}: {message}")
        self.title = title
        self.message = message


def _require_user(auth, message):
    if auth is None or not auth.is_authenticated:
        raise ReportError("Error", message)
    return auth.user


def _gate(report):
    rejection = check_upload(report.content_type, report.size)
    if rejection is not None:
        raise ReportError(rejection.title, rejection.message)


def _upload(auth, report):
    path = storage_path(auth.user.id, report.filename)
    try:
        return auth.backend.upload(SOIL_REPORTS_BUCKET, path, report.data, report.content_type)
    except BackendError as e:
        logger.error("Error uploading soil report: %s", e.message)
        raise ReportError("Analysis Failed", e.message or "Something went wrong during analysis")


def _save(auth, table, row):
    try:
        return auth.backend.insert(table, row)
    except BackendError as e:
        logger.error("Error saving %s row: %s", table, e.message)
        return None


def predict_yield(auth, report, delay=0, rng=None):
    user = _require_user(auth, "Please select a file and make sure you're logged in")
    if report is None:
        raise ReportError("Error", "Please select a file and make sure you're logged in")
    _gate(report)

    file_url = _upload(auth, report)
    analysis.pause(delay)
    result = analysis.simulate_yield_analysis(rng)

    saved = _save(auth, 'yield_predictions', {
        'user_id': user.id,
        'soil_data': result['soil_data'],
        'predicted_yield': result['predicted_yield'],
        'file_url': file_url,
    })
    result['file_url'] = file_url
    result['saved'] = saved is not None
    return result


def recommend_crops(auth, report, farm_area, weather, delay=0, rng=None):
    user = _require_user(auth, "Please upload a soil report and ensure weather data is loaded")
    if report is None or not weather:
        raise ReportError("Error", "Please upload a soil report and ensure weather data is loaded")
    if farm_area is None or not math.isfinite(farm_area) or farm_area <= 0:
        raise ReportError("Error", "Farm area must be a positive number")
    _gate(report)

    file_url = _upload(auth, report)
    analysis.pause(delay)
    result = analysis.simulate_crop_recommendation(weather, rng)

    saved = _save(auth, 'crop_recommendations', {
        'user_id': user.id,
        'recommended_crops': [crop['crop_name'] for crop in result['recommended_crops']],
        'fertilizer_info': result['fertilizers'],
        'pest_disease_info': result['pest_disease_info'],
        'weather_data': result['weather_data'],
        'farm_area': farm_area,
    })
    result['file_url'] = file_url
    result['farm_area'] = farm_area
    result['saved'] = saved is not None
    return result


def load_profile(auth):
    """The signed-in farmer's profile row, or None."""
    if auth is None or not auth.is_authenticated:
        return None
    if auth.profile is not None:
        return auth.profile
    try:
        return auth.backend.select_one('profiles', 'user_id', auth.user.id)
    except BackendError as e:
        logger.error("Error fetching user data: %s", e.message)
        return None


def load_history(auth):
    if auth is None or not auth.is_authenticated:
        return {'yield_predictions': [], 'crop_recommendations': []}
    history = {}
    for table in ('yield_predictions', 'crop_recommendations'):
        try:
            history[table] = auth.backend.select(table, 'user_id', auth.user.id)
        except BackendError as e:
            logger.error("Error loading %s: %s", table, e.message)
            history[table] = []
    return history
