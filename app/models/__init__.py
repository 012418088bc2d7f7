from app.models.brand_analysis import BrandAnalysis

__all__ = [
    "BrandAnalysis",
]
