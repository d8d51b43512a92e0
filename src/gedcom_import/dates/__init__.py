from .normalizer import MODIFIER_NOTES, NormalizedDate, normalize_date

__all__ = ["MODIFIER_NOTES", "NormalizedDate", "normalize_date"]
