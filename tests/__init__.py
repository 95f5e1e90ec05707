"""
Test Package Initialization

This package contains all unit and integration tests for the
Customer Support Agent project.

Test Structure:
- test_config.py: Configuration tests
- test_chunker.py: Text chunking tests
- test_embeddings.py: Embedding provider tests
- test_vectorstore.py: Vector store tests
- test_retriever.py: Retriever tests
- test_pipeline.py: RAG pipeline integration tests

Run tests with:
    pytest tests/ -v
    pytest tests/ -v --cov=src
"""
