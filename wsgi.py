import logging
import sys

logger = logging.getLogger("agrosanga.wsgi")

try:
    from app import create_app
    app = create_app()
    logger.info("✅ Flask app created successfully")
except Exception:
    logger.exception("❌ CRITICAL ERROR creating app")
    sys.exit(1)

if __name__ == "__main__":
    app.run()
