"""Generation and customization pipeline.

Modules
-------
retrieval
    Style exemplar lookup in the vector index.
prompt_composer
    Prompt enhancement and retrieval-augmented prompt composition.
model_resolver
    Trained-or-baseline model version selection.
synthesis
    Single-image generation on the image service.
generation
    End-to-end ``generate`` operation.
captioning
    Batch captioning of pending reference images.
dataset
    ZIP + JSONL training package assembly.
training
    Training job submission and status polling.
projects
    Project management and reference image upload.
"""
