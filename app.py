import atexit
import logging
import os
import secrets

from dotenv import load_dotenv
from flask import Flask, flash, g, jsonify, redirect, render_template, request, session, url_for
from werkzeug.exceptions import RequestEntityTooLarge

from agrosanga import reports
from agrosanga.backends import build_backend_factory
from agrosanga.forms import FarmDetailsForm, LoginForm, RegistrationForm, read_form, validate
from agrosanga.models import db
from agrosanga.reports import ReportError
from agrosanga.sessions import SessionService
from agrosanga.uploads import TOO_LARGE, SoilReport
from agrosanga.weather import WeatherService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LANGUAGES = [
    ('en', 'English'),
    ('hi', 'हिंदी'),
    ('od', 'ଓଡ଼ିଆ'),
    ('mr', 'मराठी'),
]


def _default_database_uri():
    db_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'database', 'agrosanga.db')
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    return f'sqlite:///{db_path}'


def notice_text(title, message):
    separator = " " if title.endswith(("!", ".")) else ": "
    return f"{title}{separator}{message}"


def flash_notices(notices):
    for notice in notices:
        flash(notice_text(notice.title, notice.message), notice.category)


def create_app(test_config=None):
    # ---------------- Flask Setup ----------------
    app = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY=os.environ.get('SESSION_SECRET', 'agrosanga-secret-key-2025'),
        BACKEND=os.environ.get('BACKEND', 'local'),
        SUPABASE_URL=os.environ.get('SUPABASE_URL'),
        SUPABASE_KEY=os.environ.get('SUPABASE_KEY'),
        STORAGE_ROOT=os.environ.get('STORAGE_ROOT',
                                    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'storage')),
        ANALYSIS_DELAY_SECONDS=float(os.environ.get('ANALYSIS_DELAY_SECONDS', 0)),
        OPENWEATHER_API_KEY=os.environ.get('OPENWEATHER_API_KEY'),
        PROFILE_LOOKUP_WORKERS=int(os.environ.get('PROFILE_LOOKUP_WORKERS', 2)),
        SESSION_REGISTRY_SIZE=int(os.environ.get('SESSION_REGISTRY_SIZE', 1000)),
        SESSION_IDLE_SECONDS=int(os.environ.get('SESSION_IDLE_SECONDS', 3600)),
        LOG_LEVEL=os.environ.get('LOG_LEVEL', 'INFO'),
        # Above the 5MB gate so oversize reports get the friendly message.
        MAX_CONTENT_LENGTH=6 * 1024 * 1024,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
    )
    if test_config:
        app.config.update(test_config)
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL') or _default_database_uri()

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # ---------------- Database (local backend) ----------------
    db.init_app(app)
    if app.config['BACKEND'].lower() == 'local':
        with app.app_context():
            db.create_all()
        logger.info("✅ Database initialized")

    # ---------------- Services ----------------
    sessions = SessionService(build_backend_factory(app),
                              max_workers=app.config['PROFILE_LOOKUP_WORKERS'],
                              max_sessions=app.config['SESSION_REGISTRY_SIZE'],
                              idle_timeout=app.config['SESSION_IDLE_SECONDS'])
    weather = WeatherService(api_key=app.config['OPENWEATHER_API_KEY'])
    app.extensions['agrosanga_sessions'] = sessions
    app.extensions['agrosanga_weather'] = weather
    atexit.register(sessions.dispose)

    @app.before_request
    def load_auth():
        # Only browsers that have signed up or in hold a container.
        sid = session.get('sid')
        g.auth = sessions.peek(sid) if sid else None

    def start_auth():
        if 'sid' not in session:
            session['sid'] = secrets.token_hex(16)
        g.auth = sessions.get(session['sid'])
        return g.auth

    def signed_in():
        return g.auth is not None and g.auth.is_authenticated

    @app.context_processor
    def inject_shell():
        return {
            'auth': g.get('auth'),
            'languages': LANGUAGES,
            'current_language': session.get('language', 'en'),
        }

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        flash(notice_text(*TOO_LARGE), 'danger')
        return redirect(request.path)

    # ---------------- Routes ----------------
    @app.route('/health')
    def health():
        """Health check endpoint for deployment platforms"""
        return jsonify({"status": "healthy", "service": "AgroSanga"}), 200

    @app.route('/')
    def home():
        return render_template('home.html')

    @app.route('/about')
    def about():
        return render_template('about.html')

    @app.route('/language/<code>')
    def set_language(code):
        # Cosmetic only: remembered for the selector, nothing is translated.
        if code in dict(LANGUAGES):
            session['language'] = code
        return redirect(request.referrer or url_for('home'))

    @app.route('/register', methods=['GET', 'POST'])
    def register():
        errors = {}
        values = {}
        if request.method == 'POST':
            values = read_form(RegistrationForm, request.form)
            result = validate(RegistrationForm, values)
            if not result.ok:
                errors = result.by_field()
            else:
                outcome = start_auth().sign_up(result.form)
                flash_notices(outcome.notices)
                if outcome.ok:
                    return redirect(url_for('login'))
        return render_template('register.html', errors=errors, values=values)

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        errors = {}
        values = {}
        if request.method == 'POST':
            values = read_form(LoginForm, request.form)
            result = validate(LoginForm, values)
            if not result.ok:
                errors = result.by_field()
            else:
                outcome = start_auth().sign_in(result.form.mobile_number, result.form.password)
                flash_notices(outcome.notices)
                if outcome.ok:
                    return redirect(url_for('home'))
        return render_template('login.html', errors=errors, values=values)

    @app.route('/logout', methods=['POST'])
    def logout():
        if g.auth is not None:
            flash_notices(g.auth.sign_out().notices)
            sessions.discard(session.pop('sid'))
        return redirect(url_for('home'))

    @app.route('/predict-yield', methods=['GET', 'POST'])
    def predict_yield():
        if not signed_in():
            flash('Please sign in to access yield prediction features.', 'warning')
            return redirect(url_for('login'))

        result = None
        if request.method == 'POST':
            upload = request.files.get('soil_report')
            report = SoilReport.from_file_storage(upload) if upload and upload.filename else None
            try:
                result = reports.predict_yield(g.auth, report,
                                               delay=app.config['ANALYSIS_DELAY_SECONDS'])
                flash('Analysis Complete! Your yield prediction is ready', 'success')
            except ReportError as e:
                flash(notice_text(e.title, e.message), 'danger')
        return render_template('predict_yield.html', result=result)

    @app.route('/recommend-crop', methods=['GET', 'POST'])
    def recommend_crop():
        if not signed_in():
            flash('Please sign in to access crop recommendation features.', 'warning')
            return redirect(url_for('login'))

        profile = reports.load_profile(g.auth)
        farm_area = request.form.get('farm_area', '') if request.method == 'POST' else ''
        if not farm_area and profile:
            farm_area = str(profile['farm_area'])
        location = request.form.get('location', '').strip()
        current_weather = weather.current(location or None)

        result = None
        errors = {}
        details = None
        if request.method == 'POST':
            details = validate(FarmDetailsForm, {'farm_area': farm_area, 'location': location})
            errors = details.by_field()
        if details is not None and details.ok:
            upload = request.files.get('soil_report')
            report = SoilReport.from_file_storage(upload) if upload and upload.filename else None
            try:
                result = reports.recommend_crops(g.auth, report, details.form.farm_area, current_weather,
                                                 delay=app.config['ANALYSIS_DELAY_SECONDS'])
                flash('Analysis Complete! Your crop recommendations are ready', 'success')
            except ReportError as e:
                flash(notice_text(e.title, e.message), 'danger')

        return render_template('recommend_crop.html',
                               result=result,
                               errors=errors,
                               farm_area=farm_area,
                               location=location,
                               weather=current_weather)

    @app.route('/history')
    def history():
        if not signed_in():
            flash('Please sign in to see your saved results.', 'warning')
            return redirect(url_for('login'))
        saved = reports.load_history(g.auth)
        return render_template('history.html',
                               predictions=saved['yield_predictions'],
                               recommendations=saved['crop_recommendations'])

    logger.info("✅ AgroSanga app created (backend=%s)", app.config['BACKEND'])
    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port)
