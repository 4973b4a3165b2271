"""
Dataset services

Import from the defining module so only the collaborators a process actually
uses get loaded:

- dataprep.services.dataset_service
- dataprep.services.dataset_analysis
- dataprep.services.dataset_lock
- dataprep.services.content_store
- dataprep.services.metadata_repository
- dataprep.services.analysis_queue
- dataprep.services.redis_service
- dataprep.services.service_factory
- dataprep.services.in_memory
"""

__all__ = []
