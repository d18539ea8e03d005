from sqlalchemy import Column, DateTime, Text
from sqlalchemy.sql import func

from quickbarber.database import Base


class ProcessedMessage(Base):
    __tablename__ = "processed_messages"

    message_id = Column(Text, primary_key=True)
    phone_number_id = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
