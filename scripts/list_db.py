"""Print the GameShelf tables and their row counts."""
import os
import sys

from sqlalchemy import inspect, text

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from gameshelf.config import load_config

config = load_config()
engine = database.make_engine(config['database_url'])
ins = inspect(engine)
tables = ins.get_table_names()
print('TABLES:', tables)
if not tables:
    sys.exit(0)
with engine.connect() as conn:
    for t in ['users', 'games', 'library_entries', 'follows']:
        try:
            cnt = conn.execute(text(f"SELECT count(*) FROM {t}")).scalar()
            print(f"{t}: {cnt}")
        except Exception as e:
            print(f"{t}: ERROR {e}")
