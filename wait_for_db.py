import logging
import os, time
from urllib.parse import urlparse

import psycopg2

from bbq_booking.core.config import settings

logger = logging.getLogger("wait_for_db")

# SQLAlchemy URL may start with postgresql+psycopg2://
url = settings.DATABASE_URL.replace("postgresql+psycopg2://", "postgresql://")
p = urlparse(url)

host = p.hostname or "db"
port = p.port or 5432
user = p.username or "bbq"
password = p.password or "bbq"
dbname = (p.path or "/bbq_booking").lstrip("/") or "bbq_booking"

timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))
start = time.time()

logger.info("Waiting for Postgres at %s:%s db=%s user=%s (timeout=%ss)", host, port, dbname, user, timeout_s)
while True:
    try:
        conn = psycopg2.connect(host=host, port=port, user=user, password=password, dbname=dbname)
        conn.close()
        logger.info("Postgres is ready.")
        break
    except psycopg2.OperationalError as e:
        if time.time() - start > timeout_s:
            logger.error("Timed out waiting for DB. Last error: %s", e)
            raise
        time.sleep(1)
