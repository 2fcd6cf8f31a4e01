from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
import os
from dotenv import load_dotenv

load_dotenv()  # Optional if you're also running locally with a .env file

DATABASE_URL = os.getenv("DATABASE_URL")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# ✅ Define Base for models
Base = declarative_base()


# ✅ Use create_async_engine for async operations
def make_engine(url: str):
    return create_async_engine(url, echo=SQL_ECHO)


# ✅ Create an async session factory bound to an engine
def make_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
