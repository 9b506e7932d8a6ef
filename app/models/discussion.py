from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base

# instructors and directors read a thread as one side
SIDES = ("student", "staff")


class Discussion(Base):
    __tablename__ = "discussions"

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL clone_id is the student's "general" discussion
    clone_id = Column(Integer, ForeignKey("clones.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(255), nullable=False)

    # highest message seq handed out in this thread
    last_seq = Column(Integer, nullable=False, default=0)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    student = relationship("User", back_populates="discussions")
    clone = relationship("Clone", back_populates="discussions")

    messages = relationship(
        "DiscussionMessage",
        back_populates="discussion",
        cascade="all, delete-orphan",
        order_by="DiscussionMessage.seq",
    )
    read_states = relationship(
        "DiscussionReadState", back_populates="discussion", cascade="all, delete-orphan"
    )


class DiscussionMessage(Base):
    __tablename__ = "discussion_messages"

    id = Column(Integer, primary_key=True, index=True)
    discussion_id = Column(
        Integer, ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sender_side = Column(String(20), nullable=False)

    content = Column(Text, nullable=False)
    seq = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("discussion_id", "seq", name="uq_discussion_message_seq"),
    )

    discussion = relationship("Discussion", back_populates="messages")
    sender = relationship("User")


class DiscussionReadState(Base):
    __tablename__ = "discussion_read_states"

    id = Column(Integer, primary_key=True, index=True)
    discussion_id = Column(
        Integer, ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    side = Column(String(20), nullable=False)

    unread_count = Column(Integer, nullable=False, default=0)
    last_read_seq = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("discussion_id", "side", name="uq_discussion_read_state_side"),
        CheckConstraint("unread_count >= 0", name="ck_discussion_read_state_unread"),
    )

    discussion = relationship("Discussion", back_populates="read_states")
