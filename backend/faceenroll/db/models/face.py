from sqlalchemy import Column, Integer, Boolean, DateTime, LargeBinary
from sqlalchemy.dialects.mysql import LONGBLOB
from sqlalchemy.sql import func

from faceenroll.db.base import Base


class Face(Base):
    __tablename__ = "faces"

    id = Column(Integer, primary_key=True, index=True)

    # raw uploaded image, up to MAX_IMAGE_BYTES
    template_data = Column(LargeBinary().with_variant(LONGBLOB, "mysql"))

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
