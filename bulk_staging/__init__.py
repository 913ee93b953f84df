"""Bulk spreadsheet staging and approval pipeline.

Workbook upload -> per-sheet staged items -> day relationships -> moderation
-> commit of approved items to the content store.
"""

__version__ = "0.1.0"
