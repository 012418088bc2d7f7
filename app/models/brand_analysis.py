import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
AnalysisJSON = JSON().with_variant(JSONB(), "postgresql")


class BrandAnalysis(Base):
    """One brand-monitor analysis: the company, its prompts and the latest run results.

    ``analysis_data`` keys read/written by the run pipeline:
    prompts, competitors, promptResults, citationAnalysis,
    competitiveMetrics, visibility, lastRunAt.
    """

    __tablename__ = "brand_analyses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    analysis_data: Mapped[dict | None] = mapped_column(AnalysisJSON, nullable=True, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
