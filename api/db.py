# db.py
import os
from sqlalchemy.engine import Engine
from dotenv import load_dotenv

from utils.dbEngine import make_engine

load_dotenv()

DB_URL = os.getenv("DATABASE_URL")
if not DB_URL:
    raise RuntimeError("DATABASE_URL is not set")

engine: Engine = make_engine(DB_URL)
