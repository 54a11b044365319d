"""
ReelStudio Services

- generation: FAL / Runware / Runway provider clients and the media generator
- jobs: job store, pipeline, worker, variations and budget
- accounts: signup, login, sessions and admin approval
- catalog: AI model catalog, preferences and cost estimates
- storage: object storage for uploads and generated media
- prompts: Gemini prompt enhancement
- api: FastAPI application
"""
