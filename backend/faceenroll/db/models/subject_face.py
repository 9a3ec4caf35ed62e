from sqlalchemy import Column, Integer, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from faceenroll.db.base import Base


class SubjectFace(Base):
    __tablename__ = "subject_faces"

    subject_id = Column(
        Integer,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    face_id = Column(
        Integer,
        ForeignKey("faces.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    subject = relationship("Subject", back_populates="face_links")
    face = relationship("Face")
