"""MovSense Move Quoting Pipeline - Cloud Functions.

This package contains the Python Cloud Functions that turn listing photos
into a priced moving quote.

Architecture:
- Detection: room classification, per-room detection, inventory validation
- Quote: volume aggregation, move time estimate (with fallback), upsells, trucks
- 2 Orchestrators: one per pipeline
"""

__version__ = "1.0.0"
