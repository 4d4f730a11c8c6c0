from app.db.session import engine
from app.db.base import Base


def init_db(bind=None):
    """Create all tables directly from the models (local development and tests)."""
    # Register every model on Base.metadata before create_all
    import app.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


if __name__ == "__main__":
    init_db()
