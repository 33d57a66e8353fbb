"""HTTP clients for the external services StyleForge depends on.

Modules
-------
metadata_store
    Parameterized SQL statements over the projects and image tables.
blob_store
    Reference image bytes on a Databricks volume.
language_model
    Chat and vision completions on model-serving endpoints.
vector_index
    Similarity search over captioned images and index resync.
image_service
    Replicate predictions, file uploads and trainings.
"""
