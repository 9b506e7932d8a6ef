from app.db.session import SessionLocal


# every request that needs DB gets a fresh session; a failed request rolls back
# anything it left pending (and releases row locks) before the session closes.
def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
