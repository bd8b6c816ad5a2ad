from sqlalchemy import Column, String, DateTime

from app.database import Base

class User(Base):
    """Read-only mirror of the identity provider's users, kept in sync elsewhere."""
    __tablename__ = "users"

    # opaque id issued by the identity provider
    id = Column(String(128), primary_key=True, index=True)
    name = Column(String(200), nullable=True)
    email = Column(String, unique=True, index=True, nullable=True)
    profile_image_url = Column(String, nullable=True)

    synced_at = Column(DateTime(timezone=True), nullable=True)
