import os
from dotenv import load_dotenv
from sqlalchemy.engine import URL
load_dotenv()


def _database_url():
    url = os.getenv("DB_URL")
    if url:
        return url

    # same variables the MySQL deployment has always used
    host = os.getenv("DB_HOST")
    if host:
        return URL.create(
            "mysql+pymysql",
            username=os.getenv("DB_USER"),
            password=os.getenv("DB_PASSWORD"),
            host=host,
            port=int(os.getenv("DB_PORT", "3306")),
            database=os.getenv("DB_DATABASE"),
        ).render_as_string(hide_password=False)

    return "sqlite:///./users.db"


class Settings:
    """Runtime configuration.

    Built once at startup and handed to ``create_app``; keyword overrides
    replace individual values (tests point the paths at a temp dir).
    """

    def __init__(self, **overrides):
        self.DB_URL = _database_url()
        self.DB_SSL_CA = os.getenv("DB_SSL_CA")
        self.PHOTO_DIR = os.getenv("PHOTO_DIR", "./images")
        self.UPLOAD_TMP_DIR = os.getenv("UPLOAD_TMP_DIR", "./uploads")
        self.PHOTO_WIDTH = int(os.getenv("PHOTO_WIDTH", "300"))
        self.PHOTO_HEIGHT = int(os.getenv("PHOTO_HEIGHT", "300"))
        self.REGISTER_TIMEOUT = float(os.getenv("REGISTER_TIMEOUT", "30"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.HOST = os.getenv("HOST", "0.0.0.0")
        self.PORT = int(os.getenv("PORT", "3000"))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown setting: {key}")
            setattr(self, key, value)
