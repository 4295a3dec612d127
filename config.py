import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _flag(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-key')

    # Own variable first, then the one Render injects
    uri = os.environ.get('RENDER_DATABASE_URL') or os.environ.get('DATABASE_URL')

    if uri and uri.startswith('postgresql://'):
        uri = uri.replace('postgresql://', 'postgresql+psycopg://', 1)

    SQLALCHEMY_DATABASE_URI = uri or f"sqlite:///{os.path.join(basedir, 'instance', 'agro_stock.db')}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Blob store root (fumigation images, exported reports)
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'instance', 'storage')

    # Optional TTF for PDF output; built-in Helvetica when missing
    REPORT_FONT_PATH = os.environ.get('REPORT_FONT_PATH') or os.path.join(basedir, 'static', 'fonts', 'DejaVuSans.ttf')

    # Consumption policies
    STOCK_GUARD_FUMIGATION = _flag('STOCK_GUARD_FUMIGATION')
    FUMIGATION_RECONVERT_ON_RECOMPUTE = _flag('FUMIGATION_RECONVERT_ON_RECOMPUTE')

    EXPIRY_WARNING_DAYS = int(os.environ.get('EXPIRY_WARNING_DAYS', 30))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    STOCK_GUARD_FUMIGATION = False
    FUMIGATION_RECONVERT_ON_RECOMPUTE = False
