# app/create_tables.py
from app.infra.postgres import init_db, test_connection

if __name__ == "__main__":
    if not test_connection():
        raise SystemExit("Database unreachable, check DATABASE_URL / DB_* settings")
    init_db()
    print("Tables created!")
