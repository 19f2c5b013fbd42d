"""Cloud Spanner (GoogleSQL) dialect for dbfixtures."""

from dbfixtures.dialects.spanner.adapter import SpannerAdapter, SpannerForeignKey

__all__ = ["SpannerAdapter", "SpannerForeignKey"]
