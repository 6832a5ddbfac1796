import logging

from sqlalchemy import create_engine, text, or_, Column, Integer, String
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    photo_path = Column(String(1024), nullable=False)

    def to_dict(self):
        return {
            "username": self.username,
            "email": self.email,
            "photo_path": self.photo_path,
        }


def create_db_engine(settings):
    connect_args = {}
    if settings.DB_URL.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    elif settings.DB_SSL_CA:
        connect_args["ssl"] = {"ca": settings.DB_SSL_CA}

    return create_engine(settings.DB_URL, connect_args=connect_args, pool_pre_ping=True)


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Create tables
def init_db(engine):
    Base.metadata.create_all(bind=engine)


def check_connection(engine):
    logger.info("Attempting to connect to %s...", engine.dialect.name)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Connected to %s", engine.dialect.name)


def find_existing(db, username: str, email: str):
    return db.query(User).filter(
        or_(User.username == username, User.email == email)
    ).all()


def list_users(db):
    return db.query(User).order_by(User.id).all()
