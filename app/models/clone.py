from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base

CLONE_KINDS = ("research", "practice")


class Clone(Base):
    __tablename__ = "clones"

    id = Column(Integer, primary_key=True, index=True)
    clone_name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False, default="research")

    # one of app.services.clone_status.ALL_STATUSES, or NULL
    status = Column(String(100), nullable=True, index=True)

    assigned_to_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # student's working analysis; only writable while the status is editable
    analysis = Column(Text, nullable=True)

    feedback = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # optimistic lock: bumped by SQLAlchemy on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    assigned_to = relationship("User", back_populates="assigned_clones", foreign_keys=[assigned_to_id])
    discussions = relationship("Discussion", back_populates="clone")
