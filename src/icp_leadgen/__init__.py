"""ICP Lead Generation Worker.

This package turns an Ideal Customer Profile into a deduplicated list of
leads by querying Apollo people search with progressively widened filters,
and exports the result as CSV and as an import document in object storage.
"""

__version__ = "0.1.0"
