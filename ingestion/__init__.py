"""
Streaming ETL components for Sui object changes.

This package contains all components for the Extract-Transform-Load pipeline:

Modules:
    base: Abstract base class for change sources with checkpoint management
    batching: Count-or-time batching of async streams
    checkpoint: Checkpoint stores for resumable extraction
    runner: ETL driver that composes extract, transform and load

Subpackages:
    extractors: Sui transaction history extractor
    transformers: Historical object enrichment
    loaders: Document store loader

Architecture:
    Every stage is an async generator pulled by the next one:

    1. Extract - Page through transaction blocks, retrying transient errors
    2. Transform - Attach historical object state, bulk first, then one by one
    3. Load - Delete or upsert one document per change

    Each item carries its own Ok/Err status; an Err out of the transform
    stage halts the pipeline.

Usage:
    from ingestion.extractors.sui_extractor import SuiExtractor
    from ingestion.transformers.object_enricher import ObjectEnricher
    from ingestion.loaders.mongo_loader import MongoLoader
    from ingestion.runner import ETLRunner

Example:
    extractor = SuiExtractor(sui, checkpoint_store=checkpoints)
    runner = ETLRunner(extractor, ObjectEnricher(sui), MongoLoader(collection))
    result = await runner.run(stop_event, start_from=await extractor.resume_point())

    print(f"Loaded {result['records_loaded']} records")

Error Handling:
    All components use custom exceptions from core.exceptions for
    structured error handling.
"""

__all__ = [
    "DataSource",
    "CheckpointStore",
    "MongoCheckpointStore",
    "chunks_timeout",
    "ETLRunner",
    "SuiExtractor",
    "ObjectEnricher",
    "MongoLoader",
]
