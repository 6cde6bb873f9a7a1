"""
ICP Lead Generation Test Package.

Test categories:
- test_config.py: Environment variable loading and defaults
- test_logging_utils.py: Formatters and log context
- test_models.py: Pydantic model validation
- test_filter_mapper.py: ICP to Apollo filter mapping and the widening ladder
- test_retry_utils.py: Retry policy and backoff
- test_search_client.py: Apollo search requests, retries and response shapes
- test_normalize.py: Person normalization and LinkedIn extraction
- test_csv_export.py: CSV rendering and quoting
- test_import_document.py: Import document building, keys and validation
- test_storage_client.py: Object storage wrapper
- test_job_store.py: In-memory and file-backed job store
- test_worker.py: End-to-end worker runs against fake collaborators
- test_service.py: Service functions and CLI
"""

__all__ = []
