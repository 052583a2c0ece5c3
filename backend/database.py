from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import DATABASE_URL as CONFIGURED_URL

DATABASE_URL = CONFIGURED_URL

# If using PostgreSQL, adjust the driver name for SQLAlchemy
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# The engine handles the connection to the database
engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    # echo=True # Uncomment to see all SQL queries in the console
)

# Each instance of the SessionLocal class will be a database session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class which our models will inherit from
Base = declarative_base()

# Dependency function to get a database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
