# Services package init
"""
Apostrophe Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and storage / AI providers.

Service Inventory:
    - llm_base: ErrorKind taxonomy, Success / Failure results, ProviderAdapter
    - credentials: CredentialResolver (environment, then ~/.apostrophe/*.txt)
    - gemini_service / huggingface_service / ollama_service: provider adapters
    - dispatcher: ordered fallback Gemini → Hugging Face → Ollama
    - ai_service: AIService, every AI operation the editor exposes
    - note_service: notes table CRUD
    - file_service: pasted and generated image storage
"""
